"""
auto-resume - GitHub-driven, job-targeted resume generation

Collects a developer's public GitHub repositories and a job posting, lets a
generative model rank and write about the projects, puts a human in charge of
which projects make the cut, and typesets the result with LaTeX.

Architecture:
- Intake Context: GitHub collection and job posting resolution
- Targeting Context: Job description extraction and repository ranking
- Selection Context: Interactive, human-approved project selection
- Generation Context: Resume section authoring
- Templating Context: LaTeX template population and escaping
- Rendering Context: PDF compilation
"""

__version__ = "0.1.0"
