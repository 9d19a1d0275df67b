"""Team members."""

from .service import MemberService

__all__ = ["MemberService"]
