"""
Intake Context

Responsibilities:
- Collects a developer's public GitHub repositories with their metadata
- Resolves the raw job posting text from a URL, a local file or a default

Owns: Network collection and job text resolution
Never: Interprets the job posting or ranks repositories
"""
