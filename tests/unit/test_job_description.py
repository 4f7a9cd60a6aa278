"""Unit tests for structured job description extraction."""

import pytest

from autoresume.contexts.targeting.job_description import (
    JobExtraction,
    extract_job_description,
    to_job_description,
    unique_skills,
)
from autoresume.contexts.targeting.prompts import MAX_POSTING_CHARS
from autoresume.exceptions import InvalidOutputError

from conftest import FakeProvider

EXTRACTION = {
    "title": "Senior  Backend Engineer",
    "company": "Acme",
    "summary": "Own the payments API.",
    "required_skills": ["Go", "Kubernetes", "go", " PostgreSQL "],
    "nice_to_have": ["Terraform", ""],
}


@pytest.mark.unit
async def test_extract_job_description():
    provider = FakeProvider([EXTRACTION])

    job = await extract_job_description(provider, "raw posting text")

    assert job.title == "Senior Backend Engineer"
    assert job.company == "Acme"
    assert job.required_skills == ("Go", "Kubernetes", "PostgreSQL")
    assert job.nice_to_have == ("Terraform",)
    assert job.raw_text == "raw posting text"
    assert "raw posting text" in provider.calls[0]["user"]


@pytest.mark.unit
async def test_empty_title_is_reprompted():
    provider = FakeProvider([{**EXTRACTION, "title": "  "}, EXTRACTION])

    job = await extract_job_description(provider, "posting")

    assert job.title == "Senior Backend Engineer"
    assert len(provider.calls) == 2
    assert "title must not be empty" in provider.calls[1]["user"]


@pytest.mark.unit
async def test_extraction_gives_up():
    provider = FakeProvider(["{}", "{}"])

    with pytest.raises(InvalidOutputError) as exc_info:
        await extract_job_description(provider, "posting", max_retries=1)
    assert exc_info.value.stage == "extraction"


@pytest.mark.unit
async def test_long_posting_is_cut_in_prompt():
    provider = FakeProvider([EXTRACTION])
    raw_text = "a" * MAX_POSTING_CHARS + "TAIL-MARKER"

    job = await extract_job_description(provider, raw_text)

    assert "TAIL-MARKER" not in provider.calls[0]["user"]
    assert job.raw_text == raw_text


@pytest.mark.unit
@pytest.mark.parametrize("company", [None, "", "null", "N/A", "Unknown"])
def test_missing_company_becomes_none(company):
    job = to_job_description(JobExtraction(title="Engineer", company=company), "text")

    assert job.company is None
    assert job.company_or_default == "the target company"


@pytest.mark.unit
def test_unique_skills_keeps_first_spelling():
    assert unique_skills(["Python", "python ", "  Go", "", "PYTHON"]) == ("Python", "Go")
