"""Deterministic synthetic listing catalogue for demos and tests."""

import logging
import random
from datetime import datetime, timedelta

from jobquery.core.schemas import Listing
from jobquery.sources.base import DataSource, QueryHints

logger = logging.getLogger(__name__)

TITLES = (
    "Senior Software Engineer", "Frontend Developer", "Backend Developer",
    "Full Stack Developer", "DevOps Engineer", "Data Scientist",
    "Machine Learning Engineer", "Product Manager", "UX/UI Designer",
    "Marketing Manager", "Sales Executive", "Business Analyst",
    "Project Manager", "HR Specialist", "Financial Analyst",
)

COMPANIES = (
    "TechCorp Inc.", "Digital Solutions LLC", "Innovate Labs",
    "Future Technologies", "Cloud Systems", "DataWorks Corp",
    "Creative Minds", "Global Enterprises", "StartUp Ventures",
    "EcoTech Solutions",
)

LOCATIONS = (
    "San Francisco, CA", "New York, NY", "Austin, TX",
    "Seattle, WA", "Boston, MA", "Chicago, IL",
    "Denver, CO", "Atlanta, GA", "Remote", "Hybrid",
)

JOB_TYPES = ("full_time", "part_time", "contract", "internship")
EXPERIENCE_LEVELS = ("entry", "mid", "senior", "executive")

SKILLS = (
    "JavaScript", "Python", "Java", "React", "Node.js", "Django",
    "AWS", "Docker", "Kubernetes", "PostgreSQL", "TypeScript", "GraphQL",
)


def generate_listings(
    count: int,
    seed: int = 42,
    now: datetime | None = None,
) -> list[Listing]:
    """Build ``count`` listings; the same seed and ``now`` give the same catalogue."""
    rng = random.Random(seed)
    now = now or datetime.now()
    listings: list[Listing] = []

    for i in range(count):
        title = rng.choice(TITLES)
        company = rng.choice(COMPANIES)
        location = rng.choice(LOCATIONS)
        salary_min = rng.randrange(50_000, 150_000, 1_000)
        salary_max = salary_min + rng.randrange(10_000, 100_000, 1_000)
        listings.append(
            Listing(
                id=f"job-{i + 1}",
                title=title,
                company=company,
                location=location,
                salary_min=salary_min,
                salary_max=salary_max,
                type=rng.choice(JOB_TYPES),
                experience_level=rng.choice(EXPERIENCE_LEVELS),
                posted_at=now - timedelta(days=rng.randrange(30), hours=rng.randrange(24)),
                remote=location == "Remote" or rng.random() > 0.7,
                skills=tuple(rng.sample(SKILLS, rng.randint(1, 4))),
                description=f"{company} is hiring a {title} to join a growing team.",
            ),
        )
    return listings


class SampleSource(DataSource):
    """Serves a fixed synthetic catalogue generated once at construction."""

    def __init__(self, count: int = 50, seed: int = 42, now: datetime | None = None) -> None:
        self._listings = generate_listings(count, seed=seed, now=now)

    @property
    def source_id(self) -> str:
        return "sample"

    async def fetch_candidates(self, hints: QueryHints) -> list[Listing]:
        logger.debug("Serving %d sample listings", len(self._listings))
        return list(self._listings)
