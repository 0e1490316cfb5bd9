from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, field_validator

from review_scraper.dates import parse_date


class ReviewSite(str, Enum):
    G2 = "G2"
    CAPTERRA = "Capterra"
    TRUSTPILOT = "Trustpilot"


@dataclass(frozen=True)
class G2Review:
    reviewerName: str
    jobTitle: str
    reviewDate: str
    stars: str
    reviewTitle: str
    like: str
    dislike: str
    problemsSolved: str

    @property
    def has_content(self) -> bool:
        return bool(self.like or self.dislike or self.problemsSolved)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TextReview:
    reviewerName: str
    jobTitle: str
    reviewDate: str
    stars: str
    reviewTitle: str
    reviewText: str

    @property
    def has_content(self) -> bool:
        return bool(self.reviewText)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CapterraReview(TextReview):
    industry: str = ""
    usageDuration: str = ""
    pros: str = ""
    cons: str = ""


ReviewRecord = Union[G2Review, TextReview]


@dataclass(frozen=True)
class ProductSummary:
    productName: str
    reviewSite: ReviewSite
    stars: str
    totalReviews: str


@dataclass(frozen=True)
class ParsedPage:
    summary: ProductSummary
    reviews: list[ReviewRecord] = field(default_factory=list)
    has_next_page: bool = False


@dataclass(frozen=True)
class ScrapeResult:
    summary: ProductSummary
    reviews: tuple[ReviewRecord, ...]

    @property
    def total_scraped_reviews(self) -> int:
        return len(self.reviews)

    def to_dict(self) -> dict[str, Any]:
        return {
            "productName": self.summary.productName,
            "reviewSite": self.summary.reviewSite.value,
            "stars": self.summary.stars,
            "totalReviews": self.summary.totalReviews,
            "allReviews": [review.to_dict() for review in self.reviews],
            "totalScrapedReviews": self.total_scraped_reviews,
        }


class ScrapeJob(BaseModel):
    url: str
    start_date: date
    end_date: date

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("url must not be empty")
        if "://" not in value:
            value = f"https://{value.lstrip('/')}"
        return value

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_date_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            parsed = parse_date(value)
            if parsed is None:
                raise ValueError(f"unrecognised date: {value!r}")
            return parsed
        return value


@dataclass(frozen=True)
class JobOutcome:
    url: str
    result: ScrapeResult | None
    error: str | None = None


@dataclass(frozen=True)
class BatchResult:
    outcomes: list[JobOutcome]
    skipped_entries: int

    @property
    def results(self) -> list[ScrapeResult]:
        return [outcome.result for outcome in self.outcomes if outcome.result is not None]

    @property
    def failed_jobs(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.result is None)
