from apexchat.models.business import Business
from apexchat.models.conversation import Conversation
from apexchat.models.processed_message import ProcessedMessage
from apexchat.models.whatsapp_message import WhatsAppMessage
