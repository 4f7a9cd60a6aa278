"""
Generation Context

Responsibilities:
- Writes tailored resume content (skills, projects, experience, education)
  for a job from the approved repository selection

Owns: Content authoring prompts and the ResumeContent structure
Never: Chooses repositories or formats LaTeX
"""
