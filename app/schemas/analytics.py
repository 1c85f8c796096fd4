from __future__ import annotations

from pydantic import BaseModel


class ChannelStat(BaseModel):
    channel: str
    count: int
    percentage: float


class TeamMemberStat(BaseModel):
    user_id: str
    name: str
    conversation_count: int
    avg_response_time: int


class AnalyticsSummary(BaseModel):
    conversation_stats: dict[str, int]
    channel_stats: list[ChannelStat]
    today_conversations: int
    team_performance: list[TeamMemberStat]
