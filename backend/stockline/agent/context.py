"""Per-message working state and handler results.

A CommandContext lives for one inbound message and owns no persistent state.
Handlers never mutate it: each returns a HandlerResult and the router merges
them in execution order.
"""
from dataclasses import dataclass, field
from typing import List

from sqlalchemy.orm import Session

from stockline.services.clarifications import ClarificationRequest
from stockline.services.entity_matcher import EntityResolver


@dataclass(frozen=True)
class CommandContext:
    db: Session
    merchant_id: int
    merchant_name: str = ""
    raw_input: str = ""
    resolver: EntityResolver = field(default_factory=EntityResolver)


@dataclass
class CommandResponse:
    success: bool
    message: str
    intent: str = ""


@dataclass
class HandlerResult:
    responses: List[CommandResponse] = field(default_factory=list)
    clarifications: List[ClarificationRequest] = field(default_factory=list)

    @classmethod
    def ok(cls, message: str, intent: str = "") -> "HandlerResult":
        return cls(responses=[CommandResponse(success=True, message=message, intent=intent)])

    @classmethod
    def failed(cls, message: str, intent: str = "") -> "HandlerResult":
        return cls(responses=[CommandResponse(success=False, message=message, intent=intent)])

    @classmethod
    def asking(cls, *clarifications: ClarificationRequest) -> "HandlerResult":
        return cls(clarifications=list(clarifications))

    def merge(self, other: "HandlerResult") -> "HandlerResult":
        self.responses.extend(other.responses)
        self.clarifications.extend(other.clarifications)
        return self

    @property
    def successes(self) -> List[CommandResponse]:
        return [r for r in self.responses if r.success]

    @property
    def failures(self) -> List[CommandResponse]:
        return [r for r in self.responses if not r.success]
