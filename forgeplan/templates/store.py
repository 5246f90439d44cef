"""Template store protocol and the built-in in-memory implementation.

Persistent stores (database, CMS, ...) live in the surrounding application
and only need to satisfy ``TemplateStore``.  ``InMemoryTemplateStore`` ships
with the default templates and can be loaded from a JSON file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Protocol, runtime_checkable

from forgeplan.errors import NotFoundError
from forgeplan.templates.models import ProjectTemplate, TemplateCategory
from forgeplan.utils import load_json, slugify


@runtime_checkable
class TemplateStore(Protocol):
    """Read access to project templates."""

    def get_template(self, template_id: str) -> ProjectTemplate: ...

    def list_templates(self, category: Optional[str] = None) -> list[ProjectTemplate]: ...


# ---------------------------------------------------------------------------
# Built-in content
# ---------------------------------------------------------------------------

TEMPLATE_CATEGORIES: tuple[TemplateCategory, ...] = (
    TemplateCategory(
        id="web-app",
        name="Web Application",
        description="Full-stack web applications",
        templates=("react-nextjs", "vue-nuxt", "angular"),
    ),
    TemplateCategory(
        id="mobile-app",
        name="Mobile Application",
        description="Native and cross-platform mobile apps",
        templates=("react-native", "flutter", "ionic"),
    ),
    TemplateCategory(
        id="api",
        name="API Service",
        description="RESTful and GraphQL APIs",
        templates=("rest-api", "graphql-api", "microservice"),
    ),
    TemplateCategory(
        id="ml-ai",
        name="ML/AI Project",
        description="Machine learning and AI projects",
        templates=("ml-pipeline", "ai-chatbot", "data-science"),
    ),
    TemplateCategory(
        id="devops",
        name="DevOps Tooling",
        description="DevOps and infrastructure projects",
        templates=("ci-cd", "monitoring", "infrastructure"),
    ),
    TemplateCategory(
        id="blockchain",
        name="Blockchain",
        description="Blockchain and Web3 projects",
        templates=("smart-contract", "dapp", "defi"),
    ),
)


def _template(name: str, **fields: object) -> ProjectTemplate:
    return ProjectTemplate(id=slugify(name), name=name, **fields)


DEFAULT_TEMPLATES: tuple[ProjectTemplate, ...] = (
    _template(
        "React + Next.js Web App",
        description="Modern full-stack web application with React and Next.js",
        category="web-app",
        structure={
            "src/": {
                "app/": "Next.js app router",
                "components/": "React components",
                "lib/": "Utility functions",
                "styles/": "CSS and styling",
                "types/": "TypeScript definitions",
            },
            "public/": "Static assets",
            "tests/": "Test files",
        },
        dependencies={
            "next": "^14.0.0",
            "react": "^18.0.0",
            "react-dom": "^18.0.0",
            "typescript": "^5.0.0",
            "tailwindcss": "^3.0.0",
            "@prisma/client": "^5.0.0",
        },
        config={
            "next.config.js": "Next.js configuration",
            "tailwind.config.js": "Tailwind CSS configuration",
            "tsconfig.json": "TypeScript configuration",
        },
        prompts={
            "plan": "Generate a comprehensive project plan for a React + Next.js web application including architecture, features, timeline, and technical requirements.",
            "architecture": "Design the system architecture for a Next.js application including component structure, state management, API integration, and database design.",
            "wireframes": "Create detailed wireframes for the main pages and user flows of the React application.",
            "design": "Design the UI/UX for the React application including component library, styling approach, and responsive design.",
            "backend": "Implement the backend API using Next.js API routes, including authentication, database operations, and business logic.",
            "devops": "Set up CI/CD pipeline, deployment configuration, and monitoring for the Next.js application.",
            "documentation": "Generate comprehensive documentation including API docs, setup instructions, and code documentation.",
        },
        recommended_models=("gpt-4-turbo", "claude-3-opus"),
    ),
    _template(
        "REST API Service",
        description="Scalable REST API with Node.js and Express",
        category="api",
        structure={
            "src/": {
                "controllers/": "Request handlers",
                "models/": "Data models",
                "routes/": "API routes",
                "middleware/": "Custom middleware",
                "services/": "Business logic",
                "utils/": "Utility functions",
                "tests/": "Test files",
            },
            "docs/": "API documentation",
        },
        dependencies={
            "express": "^4.18.0",
            "cors": "^2.8.5",
            "helmet": "^7.0.0",
            "joi": "^17.9.0",
            "bcryptjs": "^2.4.3",
            "jsonwebtoken": "^9.0.0",
            "prisma": "^5.0.0",
        },
        config={
            ".env.example": "Environment variables template",
            "app.js": "Express application entry point",
        },
        prompts={
            "plan": "Create a comprehensive plan for a REST API service including endpoints, data models, authentication, and scalability considerations.",
            "architecture": "Design the API architecture including route structure, middleware, database design, and error handling patterns.",
            "backend": "Implement the REST API endpoints with proper validation, authentication, error handling, and database integration.",
            "devops": "Set up deployment, monitoring, logging, and CI/CD pipeline for the API service.",
            "documentation": "Generate API documentation including endpoint specifications, request/response examples, and integration guides.",
        },
        recommended_models=("gpt-4-turbo", "claude-3-sonnet"),
    ),
    _template(
        "React Native Mobile App",
        description="Cross-platform mobile application with React Native",
        category="mobile-app",
        structure={
            "src/": {
                "components/": "React Native components",
                "screens/": "App screens",
                "navigation/": "Navigation setup",
                "services/": "API services",
                "utils/": "Utility functions",
                "assets/": "App assets",
                "tests/": "Test files",
            },
        },
        dependencies={
            "react-native": "^0.72.0",
            "@react-navigation/native": "^6.0.0",
            "@react-navigation/stack": "^6.0.0",
            "axios": "^1.4.0",
            "react-native-async-storage": "^1.18.0",
            "react-native-gesture-handler": "^2.12.0",
        },
        config={
            "app.json": "React Native app configuration",
            "babel.config.js": "Babel configuration",
            "metro.config.js": "Metro bundler configuration",
        },
        prompts={
            "plan": "Generate a comprehensive plan for a React Native mobile app including features, platform considerations, and development timeline.",
            "architecture": "Design the mobile app architecture including component structure, navigation, state management, and API integration.",
            "wireframes": "Create detailed mobile app wireframes for all screens and user flows.",
            "design": "Design the mobile UI/UX including component library, theming, and platform-specific adaptations.",
            "backend": "Implement the mobile backend API and real-time features for the React Native application.",
            "devops": "Set up mobile app deployment, testing, and CI/CD pipeline for both iOS and Android.",
            "documentation": "Generate mobile app documentation including setup guides, API integration, and deployment instructions.",
        },
        recommended_models=("gpt-4-turbo", "claude-3-opus"),
    ),
)


# ---------------------------------------------------------------------------
# InMemoryTemplateStore
# ---------------------------------------------------------------------------


class InMemoryTemplateStore:
    """Dictionary-backed ``TemplateStore``.  Listing preserves insertion order."""

    def __init__(self, templates: Iterable[ProjectTemplate] = DEFAULT_TEMPLATES) -> None:
        self._templates: dict[str, ProjectTemplate] = {}
        for template in templates:
            self.add(template)

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryTemplateStore":
        """Load templates from a JSON array (camelCase or snake_case keys).

        Entries without an ``id`` get one derived from their name.
        """
        raw = load_json(path)
        if not isinstance(raw, list):
            raise ValueError(f"Template file must contain a JSON array: {path}")
        templates = []
        for item in raw:
            if not item.get("id"):
                item = {**item, "id": slugify(item.get("name", ""))}
            templates.append(ProjectTemplate.model_validate(item))
        return cls(templates)

    def add(self, template: ProjectTemplate) -> None:
        if template.id in self._templates:
            raise ValueError(f"Duplicate template id: {template.id}")
        self._templates[template.id] = template

    def get_template(self, template_id: str) -> ProjectTemplate:
        template = self._templates.get(template_id)
        if template is None:
            raise NotFoundError("template", template_id)
        return template

    def list_templates(self, category: Optional[str] = None) -> list[ProjectTemplate]:
        if category is None:
            return list(self._templates.values())
        return [t for t in self._templates.values() if t.category == category]

    def __len__(self) -> int:
        return len(self._templates)
