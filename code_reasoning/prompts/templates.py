"""Built-in code reasoning prompt templates.

Each prompt declares its arguments, a suggested chain length and two
renderings: the full process checklist sent to the client, and a short
opening thought suitable as thought #1 of a new chain.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

MISSING_VALUE = "N/A"

# Arguments every prompt accepts and stores globally instead of per prompt
GLOBAL_ARGUMENTS = frozenset({"working_directory"})


class PromptArgument(BaseModel):
    """One declared prompt argument."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    required: bool = False


class _FilledArgs(dict[str, str]):
    """Argument map that renders absent keys with a per-prompt default."""

    def __init__(self, values: dict[str, str], defaults: dict[str, str]) -> None:
        super().__init__(values)
        self._defaults = defaults

    def __missing__(self, key: str) -> str:
        return self._defaults.get(key, MISSING_VALUE)


class ReasoningPrompt(BaseModel):
    """A canned prompt that starts a reasoning chain."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    arguments: tuple[PromptArgument, ...] = ()
    body: str
    thought_format: str
    suggested_total_thoughts: int = Field(default=5, ge=1)
    defaults: dict[str, str] = Field(default_factory=dict)

    def argument_names(self) -> frozenset[str]:
        return frozenset(arg.name for arg in self.arguments)

    def _fill(self, args: dict[str, Any]) -> _FilledArgs:
        present = {k: str(v) for k, v in args.items() if v is not None and str(v).strip()}
        return _FilledArgs(present, self.defaults)

    def render(self, args: dict[str, Any]) -> str:
        """Render the full checklist text."""
        return self.body.format_map(self._fill(args))

    def render_thought(self, args: dict[str, Any]) -> str:
        """Render the short opening thought."""
        return self.thought_format.format_map(self._fill(args))

    def describe(self) -> dict[str, Any]:
        """JSON-ready description for listings."""
        return {
            "name": self.name,
            "description": self.description,
            "suggested_total_thoughts": self.suggested_total_thoughts,
            "arguments": [arg.model_dump() for arg in self.arguments],
        }


BUG_ANALYSIS = ReasoningPrompt(
    name="bug-analysis",
    description="Systematic approach to analyzing and fixing bugs",
    arguments=(
        PromptArgument(
            name="bug_behavior",
            description="Description of the observed bug behavior",
            required=True,
        ),
        PromptArgument(
            name="expected_behavior",
            description="What should happen when working correctly",
            required=True,
        ),
        PromptArgument(
            name="affected_components",
            description="Primary components affected by the bug",
            required=True,
        ),
        PromptArgument(
            name="reproduction_steps",
            description="Steps to reproduce the bug",
        ),
    ),
    thought_format=(
        "# Bug Analysis\n\n"
        "Bug behavior: {bug_behavior}\n"
        "Expected behavior: {expected_behavior}\n"
        "Affected components: {affected_components}\n\n"
        "Let me analyze this systematically."
    ),
    suggested_total_thoughts=6,
    body="""# Bug Analysis Process

1. **Understand the reported behavior**
   - Bug behavior: {bug_behavior}
   - Reproduction steps: {reproduction_steps}

2. **Identify expected behavior**
   - Expected behavior: {expected_behavior}

3. **Isolate affected components**
   - Affected components: {affected_components}

4. **Form hypotheses**
   - What are potential root causes? List hypotheses in priority order.

5. **Test hypotheses**
   - How can we validate each hypothesis?
   - What experiments or tests will help confirm the cause?

6. **Propose fix**
   - Once cause is identified, what's the recommended fix?
   - What side effects might this fix have?
   - How can we verify the fix works?""",
)

FEATURE_PLANNING = ReasoningPrompt(
    name="feature-planning",
    description="Structured approach to planning new feature implementation",
    arguments=(
        PromptArgument(
            name="problem_statement",
            description="Clear statement of the problem this feature solves",
            required=True,
        ),
        PromptArgument(
            name="target_users",
            description="Primary users who will benefit from this feature",
            required=True,
        ),
        PromptArgument(
            name="success_criteria",
            description="How we will know the feature is successful",
        ),
        PromptArgument(
            name="affected_components",
            description="Existing components that will need modification",
        ),
    ),
    thought_format=(
        "# Feature Planning\n\n"
        "Problem statement: {problem_statement}\n"
        "Target users: {target_users}\n"
        "Success criteria: {success_criteria}\n\n"
        "Let me plan this feature systematically."
    ),
    suggested_total_thoughts=7,
    body="""# Feature Planning Process

1. **Feature Requirements**
   - Problem statement: {problem_statement}
   - Target users: {target_users}
   - Success criteria: {success_criteria}

2. **Architectural Considerations**
   - Affected components: {affected_components}
   - What new components might be needed?
   - Are there any API changes required?

3. **Implementation Strategy**
   - Break down the feature into implementation tasks
   - Identify dependencies between tasks
   - Estimate complexity and effort
   - Plan an implementation sequence

4. **Testing Strategy**
   - What unit tests will be needed?
   - What integration tests will be needed?
   - How will we validate user requirements are met?

5. **Risks and Mitigations**
   - What technical risks exist?
   - What product/user risks exist?
   - How can we mitigate each risk?

6. **Acceptance Criteria**
   - Define clear criteria for when this feature is complete
   - Include performance and quality expectations""",
)

CODE_REVIEW = ReasoningPrompt(
    name="code-review",
    description="Comprehensive template for code review",
    arguments=(
        PromptArgument(name="code", description="Code to be reviewed", required=True),
        PromptArgument(
            name="requirements",
            description="Requirements that the code should implement",
        ),
        PromptArgument(name="language", description="Programming language of the code"),
    ),
    thought_format=(
        "# Code Review\n\n"
        "Let me review this code systematically:\n\n"
        "```{language}\n{code}\n```\n\n"
        "Requirements: {requirements}"
    ),
    suggested_total_thoughts=6,
    defaults={
        "code": "",
        "language": "",
        "requirements": "No specific requirements provided.",
    },
    body="""# Code Review Template

1. **Code to Review**
```{language}
{code}
```

2. **Requirements**
{requirements}

3. **Functionality Review**
   - Does the code correctly implement the requirements?
   - Are edge cases handled appropriately?
   - Is error handling sufficient and appropriate?

4. **Code Quality Review**
   - Is the code well-structured and maintainable?
   - Are functions/methods single-purpose and reasonably sized?
   - Are variable/function names clear and descriptive?
   - Is there adequate documentation where needed?

5. **Performance Review**
   - Are there any potential performance issues?
   - Are algorithms and data structures appropriate?
   - Are there any unnecessary computations or operations?

6. **Security Review**
   - Are there any security vulnerabilities?
   - Is user input validated and sanitized?
   - Are sensitive operations properly secured?

7. **Testing Review**
   - Is test coverage adequate?
   - Do tests cover edge cases and error conditions?
   - Are tests clear and maintainable?

8. **Summary and Recommendations**
   - Overall assessment
   - Key issues to address (prioritized)
   - Suggestions for improvement""",
)

REFACTORING_PLAN = ReasoningPrompt(
    name="refactoring-plan",
    description="Structured approach to code refactoring",
    arguments=(
        PromptArgument(
            name="current_issues",
            description="Issues in the current code that prompted refactoring",
            required=True,
        ),
        PromptArgument(
            name="goals",
            description="Goals of the refactoring effort",
            required=True,
        ),
    ),
    thought_format=(
        "# Refactoring Plan\n\n"
        "Current issues: {current_issues}\n"
        "Goals: {goals}\n\n"
        "Let me develop a refactoring plan step by step."
    ),
    suggested_total_thoughts=6,
    body="""# Refactoring Plan

1. **Current Code Assessment**
   - Current issues: {current_issues}
   - Goals: {goals}
   - What is working well and should be preserved?
   - What metrics indicate refactoring is needed (complexity, duplication, etc.)?

2. **Refactoring Goals**
   - What specific improvements are we targeting?
   - What measurable outcomes do we expect?

3. **Risk Analysis**
   - What functionality might be affected?
   - What are the testing implications?
   - What dependencies might be impacted?

4. **Refactoring Strategy**
   - Break down the refactoring into discrete steps
   - Prioritize steps for maximum impact with minimum risk
   - Plan for incremental testing between steps

5. **Testing Approach**
   - How will we verify behavior is preserved?
   - What regression tests are needed?
   - How will we validate improvements?

6. **Implementation Plan**
   - Sequence of changes
   - Estimated effort
   - Verification points""",
)

ARCHITECTURE_DECISION = ReasoningPrompt(
    name="architecture-decision",
    description="Framework for making and documenting architecture decisions",
    arguments=(
        PromptArgument(
            name="decision_context",
            description="The architectural decision that needs to be made",
            required=True,
        ),
        PromptArgument(name="constraints", description="Constraints that impact the decision"),
        PromptArgument(name="options", description="Options being considered"),
    ),
    thought_format=(
        "# Architecture Decision\n\n"
        "Decision context: {decision_context}\n"
        "Constraints: {constraints}\n"
        "Options: {options}\n\n"
        "Let me evaluate this architectural decision systematically."
    ),
    suggested_total_thoughts=7,
    body="""# Architecture Decision Record

1. **Context**
   - Decision context: {decision_context}
   - Constraints: {constraints}
   - Options: {options}

2. **Options Considered**
   - What alternatives have we identified?
   - For each alternative:
     - What are its key characteristics?
     - What are its advantages?
     - What are its disadvantages?
     - What risks does it present?

3. **Decision Criteria**
   - What factors are most important for this decision?
   - How do we weigh different concerns (performance, maintainability, etc.)?

4. **Evaluation**
   - How does each option perform against our criteria?
   - What trade-offs does each option represent?

5. **Decision**
   - Which option do we select and why?
   - What were the key factors in this decision?

6. **Consequences**
   - What are the implications of this decision?
   - What becomes easier or harder as a result?
   - What new constraints does this create?
   - What follow-up decisions will be needed?""",
)

BUILTIN_PROMPTS: dict[str, ReasoningPrompt] = {
    prompt.name: prompt
    for prompt in (
        BUG_ANALYSIS,
        FEATURE_PLANNING,
        CODE_REVIEW,
        REFACTORING_PLAN,
        ARCHITECTURE_DECISION,
    )
}
