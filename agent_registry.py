# agent_registry.py

import uuid
from typing import Dict, Iterable, Optional

from shared_types import AgentSession


class AgentRegistry:

    def __init__(self):
        self.agents: Dict[str, AgentSession] = {}

    def upsert(self, connection_id: str, language_codes: Iterable[str]) -> AgentSession:
        languages = frozenset(code for code in language_codes if code)
        existing = self.agents.get(connection_id)

        if existing:
            # replace, not merge; alias and call ownership survive
            existing.language_codes = languages
            return existing

        session = AgentSession(
            connection_id=connection_id,
            agent_id=uuid.uuid4().hex,
            language_codes=languages,
        )
        self.agents[connection_id] = session
        return session

    def remove(self, connection_id: str) -> Optional[AgentSession]:
        return self.agents.pop(connection_id, None)

    def get(self, connection_id: str) -> Optional[AgentSession]:
        return self.agents.get(connection_id)

    def list(self) -> list[AgentSession]:
        return list(self.agents.values())

    def supported_languages(self) -> Optional[frozenset]:
        """Union of every online agent's languages.

        Returns None when at least one agent declared no restriction,
        meaning every language is served.
        """
        supported = set()
        for session in self.agents.values():
            if not session.language_codes:
                return None
            supported |= session.language_codes
        return frozenset(supported)

    def __len__(self) -> int:
        return len(self.agents)
