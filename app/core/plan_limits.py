"""
Gated action kinds and the default employer plan catalog.

Single source of truth for which actions a plan meters and what the
seeded plans grant. A limit of 0 means unlimited quota for that action.
"""
from enum import Enum
from typing import Dict, List, Optional, Any


UNLIMITED = 0


class ActionKind(str, Enum):
    """Actions metered against a subscription's usage counters."""

    JOB_POSTING = "jobPosting"
    FEATURED_JOB = "featuredJob"
    RESUME_CREDIT = "resumeCredit"

    @property
    def usage_field(self) -> str:
        return _USAGE_FIELDS[self]

    @property
    def limit_field(self) -> str:
        return _LIMIT_FIELDS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def usage_key(self) -> str:
        """Key used in the public usage/limits dictionaries."""
        return _USAGE_KEYS[self]

    @classmethod
    def parse(cls, value) -> Optional["ActionKind"]:
        """Return the matching kind, or None for anything unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def from_usage_key(cls, key: str) -> Optional["ActionKind"]:
        """Reverse of usage_key, e.g. 'resumeCredits' -> RESUME_CREDIT."""
        for kind, usage_key in _USAGE_KEYS.items():
            if usage_key == key:
                return kind
        return None


_USAGE_FIELDS = {
    ActionKind.JOB_POSTING: "usage_job_postings",
    ActionKind.FEATURED_JOB: "usage_featured_jobs",
    ActionKind.RESUME_CREDIT: "usage_resume_credits",
}

_LIMIT_FIELDS = {
    ActionKind.JOB_POSTING: "limit_job_postings",
    ActionKind.FEATURED_JOB: "limit_featured_jobs",
    ActionKind.RESUME_CREDIT: "limit_resume_credits",
}

_LABELS = {
    ActionKind.JOB_POSTING: "Job posting",
    ActionKind.FEATURED_JOB: "Featured job",
    ActionKind.RESUME_CREDIT: "Resume credit",
}

_USAGE_KEYS = {
    ActionKind.JOB_POSTING: "jobPostings",
    ActionKind.FEATURED_JOB: "featuredJobs",
    ActionKind.RESUME_CREDIT: "resumeCredits",
}


def is_unlimited(limit: int) -> bool:
    return limit == UNLIMITED


# Default plans seeded into the catalog (prices per billing cycle)
DEFAULT_PLANS: List[Dict[str, Any]] = [
    {
        "name": "Free",
        "display_name": "Free Plan",
        "description": "Perfect for startups and small businesses",
        "price_monthly": 0,
        "price_annual": 0,
        "limits": {"jobPostings": 5, "featuredJobs": 0, "resumeCredits": 0},
        "sort_order": 1,
        "is_popular": False,
    },
    {
        "name": "Basic",
        "display_name": "Basic Plan",
        "description": "For growing companies hiring regularly",
        "price_monthly": 49,
        "price_annual": 490,  # 2 months free on annual
        "limits": {"jobPostings": 20, "featuredJobs": 10, "resumeCredits": 25},
        "sort_order": 2,
        "is_popular": True,
    },
    {
        "name": "Premium",
        "display_name": "Premium Plan",
        "description": "For enterprises with high-volume hiring",
        "price_monthly": 149,
        "price_annual": 1490,
        "limits": {"jobPostings": 0, "featuredJobs": 0, "resumeCredits": 100},
        "sort_order": 3,
        "is_popular": False,
    },
    {
        "name": "Enterprise",
        "display_name": "Enterprise Plan",
        "description": "Custom solutions for large organizations",
        "price_monthly": 0,  # contact sales
        "price_annual": 0,
        "limits": {"jobPostings": 0, "featuredJobs": 0, "resumeCredits": 0},
        "sort_order": 4,
        "is_popular": False,
    },
]
