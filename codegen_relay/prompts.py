"""Instruction templates sent to the hosted model.

User text is interpolated as-is: no escaping, trimming or truncation.
"""

from __future__ import annotations

CODE_TEMPLATE = "Convert the following pseudocode to {language}:\n{pseudocode}"
SOLVE_TEMPLATE = "Solve the following problem: {problem_statement}"


def build_code_prompt(pseudocode: str, language: str) -> str:
    return CODE_TEMPLATE.format(language=language, pseudocode=pseudocode)


def build_solve_prompt(problem_statement: str) -> str:
    return SOLVE_TEMPLATE.format(problem_statement=problem_statement)
