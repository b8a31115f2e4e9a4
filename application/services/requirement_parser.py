# application/services/requirement_parser.py
import re
from dataclasses import replace
from typing import List, Sequence, Tuple

from domain.models.requirements import ModuleType, ParsedRequirement, Priority, RequirementModule
from domain.models.task_state import AgentRole

UI_KEYWORDS = (
    "ui", "interface", "frontend", "react", "component", "page", "form",
    "button", "display", "view", "screen", "dashboard", "mobile", "web",
)
BACKEND_KEYWORDS = (
    "api", "backend", "server", "endpoint", "rest", "graphql", "service",
    "authentication", "authorization", "route", "controller", "middleware",
)
DATA_KEYWORDS = (
    "database", "db", "mongodb", "schema", "model", "collection", "data",
    "store", "persist", "query", "mongoose",
)

ACCEPTANCE_CRITERIA = {
    ModuleType.FRONTEND: (
        "UI components are responsive and mobile-friendly",
        "All user interactions work as expected",
    ),
    ModuleType.BACKEND: (
        "All API endpoints return correct responses",
        "Error handling is implemented",
        "Authentication and authorization work correctly",
    ),
    ModuleType.DATABASE: (
        "Schema is properly structured and normalized",
        "Indexes are created for optimal performance",
        "Data validation rules are enforced",
    ),
    ModuleType.QA: (
        "All tests pass",
        "Code meets quality standards",
    ),
    ModuleType.SECURITY: (
        "No critical vulnerabilities",
        "Security best practices followed",
    ),
}

FORM_CRITERION = "Form validation works correctly"

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def _mentions_any(text: str, keywords: Sequence[str]) -> bool:
    # Substring match: "microservices" counts as a backend mention
    lower_text = text.lower()
    return any(keyword in lower_text for keyword in keywords)


class RequirementParser:
    """Keyword-driven classifier: free text -> typed requirement modules.

    Deterministic and side-effect free. Detected modules are emitted in the
    order frontend, backend, database; QA and security are always appended.
    """

    def parse(self, text: str) -> ParsedRequirement:
        modules: List[RequirementModule] = []
        counter = 0

        def next_id() -> str:
            nonlocal counter
            counter += 1
            return f"mod-{counter}"

        if self.mentions_ui(text):
            modules.append(RequirementModule(
                id=next_id(),
                title="User Interface",
                description=self._extract(
                    text, self.mentions_ui,
                    "Build a user interface that: ",
                    "Build a user interface for the application",
                ),
                type=ModuleType.FRONTEND,
                assigned_role=AgentRole.FRONTEND,
                priority=Priority.HIGH,
                acceptance_criteria=self.acceptance_criteria(text, ModuleType.FRONTEND),
            ))

        if self.mentions_backend(text):
            modules.append(RequirementModule(
                id=next_id(),
                title="Backend API",
                description=self._extract(
                    text, self.mentions_backend,
                    "Build a backend API that: ",
                    "Build a RESTful API backend",
                ),
                type=ModuleType.BACKEND,
                assigned_role=AgentRole.BACKEND,
                priority=Priority.HIGH,
                acceptance_criteria=self.acceptance_criteria(text, ModuleType.BACKEND),
            ))

        if self.mentions_database(text):
            db_module = RequirementModule(
                id=next_id(),
                title="Data Model",
                description=self._extract(
                    text, self.mentions_database,
                    "Design a database schema that: ",
                    "Design appropriate database schemas",
                ),
                type=ModuleType.DATABASE,
                assigned_role=AgentRole.DATA,
                priority=Priority.HIGH,
                acceptance_criteria=self.acceptance_criteria(text, ModuleType.DATABASE),
            )
            # The data model precedes the API that serves it
            modules = [
                replace(m, dependencies=m.dependencies + (db_module.id,)) if m.type == ModuleType.BACKEND else m
                for m in modules
            ]
            modules.append(db_module)

        modules.append(RequirementModule(
            id=next_id(),
            title="Quality Assurance",
            description="Validate and test all generated code",
            type=ModuleType.QA,
            assigned_role=AgentRole.QA,
            priority=Priority.HIGH,
            dependencies=tuple(m.id for m in modules),
            acceptance_criteria=ACCEPTANCE_CRITERIA[ModuleType.QA],
        ))

        modules.append(RequirementModule(
            id=next_id(),
            title="Security Review",
            description="Perform security audit on generated code",
            type=ModuleType.SECURITY,
            assigned_role=AgentRole.SECURITY,
            priority=Priority.HIGH,
            dependencies=tuple(m.id for m in modules if m.type != ModuleType.QA),
            acceptance_criteria=ACCEPTANCE_CRITERIA[ModuleType.SECURITY],
        ))

        return ParsedRequirement(
            modules=tuple(modules),
            overall_goal=text,
            constraints=self.extract_constraints(text),
        )

    def mentions_ui(self, text: str) -> bool:
        return _mentions_any(text, UI_KEYWORDS)

    def mentions_backend(self, text: str) -> bool:
        return _mentions_any(text, BACKEND_KEYWORDS)

    def mentions_database(self, text: str) -> bool:
        return _mentions_any(text, DATA_KEYWORDS)

    def acceptance_criteria(self, text: str, module_type: ModuleType) -> Tuple[str, ...]:
        criteria = list(ACCEPTANCE_CRITERIA.get(module_type, ()))
        if module_type == ModuleType.FRONTEND and "form" in text.lower():
            criteria.append(FORM_CRITERION)
        return tuple(criteria)

    def extract_constraints(self, text: str) -> Tuple[str, ...]:
        lower_text = text.lower()
        constraints = []

        if "mobile" in lower_text:
            constraints.append("Must be mobile-friendly")
        if "secure" in lower_text or "security" in lower_text:
            constraints.append("Must follow security best practices")
        if "fast" in lower_text or "performance" in lower_text:
            constraints.append("Must be optimized for performance")

        return tuple(constraints)

    @staticmethod
    def _extract(text: str, matches, prefix: str, fallback: str) -> str:
        sentences = [s.strip() for s in _SENTENCE_SPLIT.split(text)]
        relevant = [s for s in sentences if s and matches(s)]
        if not relevant:
            return fallback
        return prefix + ". ".join(relevant)

