from django.contrib import admin

from .models import Conversation, ConversationParticipant, Message


class ParticipantInline(admin.TabularInline):
    model = ConversationParticipant
    extra = 0
    raw_id_fields = ('user',)


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ('__str__', 'type', 'school', 'last_message_at', 'created_by')
    list_filter = ('type', 'school')
    search_fields = ('name',)
    raw_id_fields = ('created_by', 'last_message_sender')
    inlines = [ParticipantInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ('conversation', 'sender', 'type', 'created_at')
    list_filter = ('type', 'school')
    search_fields = ('content',)
    raw_id_fields = ('conversation', 'sender')
    filter_horizontal = ('read_by',)
