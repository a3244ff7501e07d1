from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class Phase(str, Enum):
    LOBBY = 'lobby'
    PLAYING = 'playing'
    FINISHED = 'finished'


@dataclass(frozen=True)
class CatalogItem:
    """One playable song. Never mutated once drawn."""
    title: str
    artist: str
    year: int
    preview_url: str = ''
    catalog_id: str = ''

    def to_dict(self):
        return {
            'title': self.title,
            'artist': self.artist,
            'year': self.year,
            'previewUrl': self.preview_url,
        }


@dataclass
class Member:
    connection_id: str
    nickname: str
    is_host: bool = False
    timeline: List[CatalogItem] = field(default_factory=list)

    def to_dict(self, include_timeline=False):
        data = {
            'nickname': self.nickname,
            'isHost': self.is_host,
        }
        if include_timeline:
            data['timeline'] = [c.to_dict() for c in self.timeline]
        return data


@dataclass
class Session:
    code: str
    members: List[Member] = field(default_factory=list)
    deck: List[CatalogItem] = field(default_factory=list)
    discard: List[CatalogItem] = field(default_factory=list)
    active_item: Optional[CatalogItem] = None
    turn_index: int = 0
    phase: Phase = Phase.LOBBY
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def host(self) -> Optional[Member]:
        return next((m for m in self.members if m.is_host), None)

    @property
    def current_member(self) -> Optional[Member]:
        if self.members and 0 <= self.turn_index < len(self.members):
            return self.members[self.turn_index]
        return None

    def find_member(self, connection_id: str) -> Optional[Member]:
        return next((m for m in self.members if m.connection_id == connection_id), None)

    def to_dict(self):
        current = self.current_member
        return {
            'gameCode': self.code,
            'phase': self.phase.value,
            'players': [
                dict(m.to_dict(), timelineLength=len(m.timeline)) for m in self.members
            ],
            'currentTurn': current.nickname if current and self.phase == Phase.PLAYING else None,
            'cardsRemaining': len(self.deck),
            'createdAt': self.created_at.isoformat(),
        }
