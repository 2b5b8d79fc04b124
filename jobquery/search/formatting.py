"""Human-readable rendering of salaries and listing ages."""

from datetime import datetime


def format_salary(amount: int) -> str:
    """Render a salary as ``$85k`` (thousands) or ``$850``."""
    if amount >= 1000:
        return f"${amount / 1000:.0f}k"
    return f"${amount}"


def format_age(posted_at: datetime, now: datetime | None = None) -> str:
    """Describe how long ago a listing was posted."""
    now = now or datetime.now(tz=posted_at.tzinfo)
    days = abs(now - posted_at).days

    if days == 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    return f"{days // 30} months ago"
