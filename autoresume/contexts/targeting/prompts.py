"""
Prompt templates for the targeting context.
"""

# =============================================================================
# JOB EXTRACTION
# =============================================================================

EXTRACTION_SYSTEM_PROMPT = """\
You are a recruiting assistant. You read job postings and extract the facts a
candidate needs to tailor a resume. Extract values as they appear in the text.
Never invent requirements that the posting does not state."""

EXTRACTION_USER_TEMPLATE = """\
Extract the job posting below into a structured record:

- title: the exact job title as written
- company: the hiring company, or null if the posting does not name one
- summary: the key responsibilities, as clean plain text
- required_skills: technologies, tools and skills the posting requires, most important first
- nice_to_have: skills listed as optional, preferred or a plus

Keep skills short (e.g. "Go", "Kubernetes", "PostgreSQL"), one skill per entry.

---
Job Posting:
{content}"""

# Longer postings are cut before prompting
MAX_POSTING_CHARS = 12000

# =============================================================================
# REPOSITORY RANKING
# =============================================================================

RANKING_SYSTEM_PROMPT = """\
You are a technical recruiter reviewing a candidate's GitHub profile. You rank
repositories by how strongly they support an application for a specific job,
and you explain each placement in one sentence."""

RANKING_USER_TEMPLATE = """\
Rank ALL of the repositories below for a resume targeting a {title} role at {company}.

CRITERIA:
- Relevance to the required skills: {required_skills}
- Relevance to the nice-to-have skills: {nice_to_have}
- Recent activity and maintenance (prefer repositories active in the last 2 years)
- Project maturity (complete, documented projects over experiments)
- Community engagement (stars, forks) and the importance score
- Variety of the overall selection

Job summary:
{summary}

REPOSITORIES:
{repositories}

Return every repository exactly once. Identify each one by its URL in the
"id" field. Rank 1 is the most relevant. Give a non-empty one-sentence
rationale for each."""
