"""
Targeting Context

Responsibilities:
- Turns raw job posting text into a structured JobDescription
- Orders collected repositories by relevance to the job, with a rationale each

Owns: Job interpretation and relevance ranking (model-assisted)
Never: Fetches data or asks the user anything
"""
