"""
Templating Context

Responsibilities:
- Merges generated content and personal information into the LaTeX template
- Escapes every dynamic string and applies length caps
- Localizes section headers

Owns: The LaTeX template, escaping rules and locales
Never: Calls the network or a model, or runs the LaTeX compiler
"""
