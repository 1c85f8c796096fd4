import enum


class UserRole(enum.Enum):
    super_admin = "super_admin"
    company_admin = "company_admin"
    agent = "agent"


class ChannelType(enum.Enum):
    whatsapp = "whatsapp"
    email = "email"
    instagram = "instagram"
    facebook = "facebook"
    phone = "phone"


class ConversationStatus(enum.Enum):
    new = "new"
    in_progress = "in-progress"
    resolved = "resolved"
    closed = "closed"


class ConversationPriority(enum.Enum):
    low = "low"
    normal = "normal"
    high = "high"
    urgent = "urgent"


class SenderType(enum.Enum):
    customer = "customer"
    agent = "agent"
