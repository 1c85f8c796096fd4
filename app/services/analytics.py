"""Per-company dashboard figures.

Aggregation happens in Python over the company's rows so the same code runs
on PostgreSQL and on the SQLite test database.
"""

from collections import Counter, defaultdict
from datetime import datetime

from sqlalchemy.orm import Session

from app.models.company import User
from app.models.conversation import Conversation, Message
from app.models.customer import Customer
from app.models.enums import SenderType
from app.services.common import as_utc, now_utc


def _percentage(count: int, total: int) -> float:
    if not total:
        return 0.0
    return round(count * 100 / total, 1)


def summarize(db: Session, company_id: int, now: datetime | None = None) -> dict:
    now = as_utc(now) or now_utc()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    conversations = (
        db.query(Conversation)
        .join(Customer, Conversation.customer_id == Customer.id)
        .filter(Customer.company_id == company_id)
        .all()
    )
    total = len(conversations)

    status_counts = Counter(conversation.status.value for conversation in conversations)
    channel_counts = Counter(conversation.channel.value for conversation in conversations)
    channel_stats = [
        {"channel": channel, "count": count, "percentage": _percentage(count, total)}
        for channel, count in sorted(channel_counts.items(), key=lambda item: (-item[1], item[0]))
    ]
    today = sum(1 for conversation in conversations if as_utc(conversation.created_at) >= midnight)

    created_at = {conversation.id: as_utc(conversation.created_at) for conversation in conversations}
    assigned = Counter(conversation.assigned_to for conversation in conversations if conversation.assigned_to)

    response_minutes: dict[str, list[float]] = defaultdict(list)
    if created_at:
        agent_messages = (
            db.query(Message)
            .filter(Message.conversation_id.in_(list(created_at)))
            .filter(Message.sender_type == SenderType.agent)
            .filter(Message.sender_id.is_not(None))
            .all()
        )
        for message in agent_messages:
            delta = as_utc(message.timestamp) - created_at[message.conversation_id]
            response_minutes[message.sender_id].append(delta.total_seconds() / 60)

    team = []
    users = db.query(User).filter(User.company_id == company_id).filter(User.is_active.is_(True)).all()
    for user in users:
        samples = response_minutes.get(user.id, [])
        team.append(
            {
                "user_id": user.id,
                "name": user.display_name,
                "conversation_count": assigned.get(user.id, 0),
                "avg_response_time": round(sum(samples) / len(samples)) if samples else 0,
            }
        )
    team.sort(key=lambda row: (-row["conversation_count"], row["name"]))

    return {
        "conversation_stats": dict(status_counts),
        "channel_stats": channel_stats,
        "today_conversations": today,
        "team_performance": team,
    }
