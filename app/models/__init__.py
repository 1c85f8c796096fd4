from app.models.company import Company, User  # noqa: F401
from app.models.conversation import Conversation, Message  # noqa: F401
from app.models.customer import Customer, InternalNote  # noqa: F401
from app.models.enums import (  # noqa: F401
    ChannelType,
    ConversationPriority,
    ConversationStatus,
    SenderType,
    UserRole,
)
from app.models.template import Template  # noqa: F401
