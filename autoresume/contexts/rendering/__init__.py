"""
Rendering Context

Responsibilities:
- Compiles LaTeX to PDF
- Handles LaTeX errors and provides diagnostic information

Owns: LaTeX compilation and PDF generation
Never: Modifies template content
"""
