"""Single-stage code tasks: generate, document, test or review code.

Each task is a one-stage pipeline run with its own system prompt and
temperature, so a task gets the same retry and fallback handling as a
project stage and comes back as an ordinary ``DeliverableBundle``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from forgeplan.errors import ValidationError
from forgeplan.pipeline.stages import GenerationStage, PromptRenderer, TemplatePrompt


class CodeTaskKind(str, Enum):
    CODE = "code"
    DOCS = "docs"
    TESTS = "tests"
    REVIEW = "review"


DEFAULT_TEST_FRAMEWORK = "jest"

_renderer = PromptRenderer()


@dataclass(frozen=True)
class CodeTask:
    """Prompt, system prompt and temperature for one kind of code task."""

    kind: CodeTaskKind
    title: str
    system_prompt: str
    prompt: str
    temperature: float


CODE_TASKS: dict[CodeTaskKind, CodeTask] = {
    CodeTaskKind.CODE: CodeTask(
        kind=CodeTaskKind.CODE,
        title="Generated Code",
        system_prompt=(
            "You are an expert {{ language }} developer. Generate clean, efficient, and "
            "well-documented code based on the description provided. Follow best practices "
            "and include appropriate error handling."
        ),
        prompt="""
Generate {{ language }} code for: {{ subject }}

Please provide:
1. Complete, working code
2. Brief explanation of the implementation
3. Usage examples if applicable
""",
        temperature=0.3,
    ),
    CodeTaskKind.DOCS: CodeTask(
        kind=CodeTaskKind.DOCS,
        title="Code Documentation",
        system_prompt=(
            "You are a technical documentation expert. Generate comprehensive, clear "
            "documentation for the provided {{ language }} code."
        ),
        prompt="""
Generate documentation for this {{ language }} code:

{{ subject }}

Please include:
1. Overview of functionality
2. Parameter descriptions
3. Return value descriptions
4. Usage examples
5. Any important notes or considerations
""",
        temperature=0.3,
    ),
    CodeTaskKind.TESTS: CodeTask(
        kind=CodeTaskKind.TESTS,
        title="Unit Tests",
        system_prompt=(
            "You are a testing expert. Generate comprehensive unit tests for the provided "
            "{{ language }} code using {{ framework }}."
        ),
        prompt="""
Generate unit tests for this {{ language }} code using {{ framework }}:

{{ subject }}

Please include:
1. Test cases for normal functionality
2. Edge cases
3. Error handling tests
4. Mock setups if needed
""",
        temperature=0.3,
    ),
    CodeTaskKind.REVIEW: CodeTask(
        kind=CodeTaskKind.REVIEW,
        title="Code Review",
        system_prompt=(
            "You are a senior code reviewer. Provide detailed feedback on code quality, "
            "best practices, security, and performance."
        ),
        prompt="""
Review this {{ language }} code:

{{ subject }}

Please analyze:
1. Code quality and readability
2. Best practices adherence
3. Potential bugs or issues
4. Security vulnerabilities
5. Performance optimizations
6. Suggestions for improvement
""",
        temperature=0.5,
    ),
}


def code_task_stage(
    kind: CodeTaskKind | str,
    subject: str,
    language: str,
    framework: Optional[str] = None,
) -> GenerationStage:
    """The single stage for one code task.

    ``subject`` is the description for ``code`` and the source code for the
    other kinds.  It is passed to the prompt as a value, never as template
    source.

    Raises:
        ValidationError: Unknown task kind, or a blank subject or language.
    """
    try:
        task = CODE_TASKS[CodeTaskKind(kind)]
    except ValueError:
        raise ValidationError([f"Unknown code task: {kind}"]) from None

    reasons = []
    if not subject.strip():
        reasons.append("Task subject is required")
    if not language.strip():
        reasons.append("Language is required")
    if reasons:
        raise ValidationError(reasons)

    context: dict[str, Any] = {
        "subject": subject,
        "language": language.strip(),
        "framework": (framework or DEFAULT_TEST_FRAMEWORK).strip(),
    }
    return GenerationStage(
        key=task.kind.value,
        title=task.title,
        prompt_builder=TemplatePrompt(task.prompt, **context),
        temperature=task.temperature,
        system_prompt=_renderer.render(task.system_prompt, context),
    )
