"""
Selection Context

Responsibilities:
- Presents the ranked repositories to the user
- Collects the user's choice and any manually added projects
- Freezes the result as the only repository set content generation may use

Owns: The human checkpoint
Never: Calls the network or a model
"""
