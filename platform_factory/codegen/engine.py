"""
Code Generation Engine — PlatformSpec → ordered list of GeneratedFile.

Every generator receives the same frozen ``ScaffoldParams`` and returns the
files it owns. Text files are Jinja2 templates packaged under
``platform_factory/codegen/templates`` (StrictUndefined: a missing variable
is a bug, not an empty string); JSON files are dumped from dicts.

Output order:
    package.json → shared/schema.ts → auth routes → server entrypoint →
    .env.example → Dockerfile, docker-compose.yml → frontend shell →
    README.md → subscription routes (hasSubscriptions) →
    payment webhooks (hasPayments)

Generation is pure: the same spec always yields byte-identical files.
"""

import colorsys
import json
import logging
import re
from dataclasses import dataclass
from functools import lru_cache

from jinja2 import Environment, PackageLoader, StrictUndefined
from markupsafe import escape

from platform_factory.codegen.models import GeneratedFile, PlatformSpec
from platform_factory.core.exceptions import BuildError

logger = logging.getLogger(__name__)

TEMPLATE_PACKAGE = "platform_factory.codegen"
TEMPLATE_DIR = "templates"


# ══════════════════════════════════════════════════════════════════════════════
# Parameters
# ══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ScaffoldParams:
    """Everything a generator may read, derived once from the spec."""

    name: str
    name_ar: str
    description: str
    description_ar: str
    sector: str
    features: tuple[str, ...]
    slug: str
    db_name: str
    has_auth: bool
    has_payments: bool
    has_subscriptions: bool
    has_cms: bool
    has_analytics: bool
    primary_color: str
    secondary_color: str
    primary_hsl: str
    secondary_hsl: str

    @classmethod
    def from_spec(cls, spec: PlatformSpec) -> "ScaffoldParams":
        slug = slugify(spec.name)
        return cls(
            name=spec.name,
            name_ar=spec.name_ar,
            description=spec.description,
            description_ar=spec.description_ar,
            sector=spec.sector,
            features=tuple(spec.features),
            slug=slug,
            db_name=slug.replace("-", "_"),
            has_auth=spec.has_auth,
            has_payments=spec.has_payments,
            has_subscriptions=spec.has_subscriptions,
            has_cms=spec.has_cms,
            has_analytics=spec.has_analytics,
            primary_color=spec.primary_color,
            secondary_color=spec.secondary_color,
            primary_hsl=hex_to_hsl(spec.primary_color),
            secondary_hsl=hex_to_hsl(spec.secondary_color),
        )


def slugify(name: str) -> str:
    """Package-safe slug; names with no ASCII letters or digits become ``platform``."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "platform"


def hex_to_hsl(color: str) -> str:
    """``#rrggbb`` → ``"H S% L%"`` as used by the Tailwind CSS variables."""
    r, g, b = (int(color[i:i + 2], 16) / 255 for i in (1, 3, 5))
    h, l, s = colorsys.rgb_to_hls(r, g, b)
    return f"{round(h * 360, 1)} {round(s * 100, 1)}% {round(l * 100, 1)}%"


# ══════════════════════════════════════════════════════════════════════════════
# Template environment
# ══════════════════════════════════════════════════════════════════════════════


def _js_string(value) -> str:
    return json.dumps(str(value), ensure_ascii=False)


def _jsx_text(value) -> str:
    return str(escape(str(value))).replace("{", "&#123;").replace("}", "&#125;")


@lru_cache(maxsize=1)
def get_environment() -> Environment:
    env = Environment(
        loader=PackageLoader(TEMPLATE_PACKAGE, TEMPLATE_DIR),
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["js"] = _js_string
    env.filters["jsx"] = _jsx_text
    return env


def render(template_name: str, params: ScaffoldParams) -> str:
    return get_environment().get_template(template_name).render(p=params)


def _file(path: str, content: str, language: str, category: str) -> GeneratedFile:
    return GeneratedFile(
        file_name=path.rsplit("/", 1)[-1],
        file_path=path,
        content=content,
        language=language,
        category=category,
    )


def _template_file(path: str, template: str, params: ScaffoldParams, language: str, category: str) -> GeneratedFile:
    return _file(path, render(template, params), language, category)


def _json_file(path: str, data: dict, category: str = "config") -> GeneratedFile:
    return _file(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n", "json", category)


# ══════════════════════════════════════════════════════════════════════════════
# Generators
# ══════════════════════════════════════════════════════════════════════════════

BASE_DEPENDENCIES = {
    "@hookform/resolvers": "^3.9.0",
    "@radix-ui/react-dialog": "^1.1.2",
    "@radix-ui/react-label": "^2.1.0",
    "@radix-ui/react-select": "^2.1.2",
    "@radix-ui/react-slot": "^1.1.0",
    "@radix-ui/react-toast": "^1.2.2",
    "@tanstack/react-query": "^5.56.2",
    "bcryptjs": "^2.4.3",
    "class-variance-authority": "^0.7.0",
    "clsx": "^2.1.1",
    "cookie-parser": "^1.4.6",
    "drizzle-orm": "^0.33.0",
    "drizzle-zod": "^0.5.1",
    "express": "^4.21.0",
    "lucide-react": "^0.441.0",
    "pg": "^8.13.0",
    "react": "^18.3.1",
    "react-dom": "^18.3.1",
    "react-hook-form": "^7.53.0",
    "tailwind-merge": "^2.5.2",
    "tailwindcss-animate": "^1.0.7",
    "wouter": "^3.3.5",
    "zod": "^3.23.8",
}

PAYMENT_DEPENDENCIES = {"stripe": "^14.0.0"}

DEV_DEPENDENCIES = {
    "@types/bcryptjs": "^2.4.6",
    "@types/cookie-parser": "^1.4.7",
    "@types/express": "^4.17.21",
    "@types/node": "^22.5.5",
    "@types/pg": "^8.11.10",
    "@types/react": "^18.3.8",
    "@types/react-dom": "^18.3.0",
    "@vitejs/plugin-react": "^4.3.1",
    "autoprefixer": "^10.4.20",
    "drizzle-kit": "^0.24.2",
    "postcss": "^8.4.47",
    "tailwindcss": "^3.4.12",
    "tsx": "^4.19.1",
    "typescript": "^5.6.2",
    "vite": "^5.4.6",
}


def generate_package_json(p: ScaffoldParams) -> list[GeneratedFile]:
    dependencies = dict(BASE_DEPENDENCIES)
    if p.has_payments:
        dependencies.update(PAYMENT_DEPENDENCIES)
    manifest = {
        "name": p.slug,
        "version": "1.0.0",
        "description": p.description,
        "type": "module",
        "scripts": {
            "dev": "tsx watch server/index.ts",
            "build": "vite build && tsc -p tsconfig.server.json",
            "start": "node dist/server/index.js",
            "db:push": "drizzle-kit push",
            "db:studio": "drizzle-kit studio",
        },
        "dependencies": dict(sorted(dependencies.items())),
        "devDependencies": DEV_DEPENDENCIES,
    }
    return [_json_file("package.json", manifest)]


def generate_schema(p: ScaffoldParams) -> list[GeneratedFile]:
    return [_template_file("shared/schema.ts", "shared/schema.ts.j2", p, "typescript", "shared")]


def generate_auth_routes(p: ScaffoldParams) -> list[GeneratedFile]:
    return [_template_file("server/routes/auth.ts", "server/routes/auth.ts.j2", p, "typescript", "backend")]


def generate_server(p: ScaffoldParams) -> list[GeneratedFile]:
    return [_template_file("server/index.ts", "server/index.ts.j2", p, "typescript", "backend")]


def generate_env_template(p: ScaffoldParams) -> list[GeneratedFile]:
    return [_template_file(".env.example", "env.example.j2", p, "plaintext", "config")]


def generate_container_files(p: ScaffoldParams) -> list[GeneratedFile]:
    return [
        _template_file("Dockerfile", "Dockerfile.j2", p, "dockerfile", "infrastructure"),
        _template_file("docker-compose.yml", "docker-compose.yml.j2", p, "yaml", "infrastructure"),
    ]


TSCONFIG = {
    "compilerOptions": {
        "target": "ES2020",
        "useDefineForClassFields": True,
        "lib": ["ES2020", "DOM", "DOM.Iterable"],
        "module": "ESNext",
        "skipLibCheck": True,
        "moduleResolution": "bundler",
        "allowImportingTsExtensions": True,
        "resolveJsonModule": True,
        "isolatedModules": True,
        "noEmit": True,
        "jsx": "react-jsx",
        "strict": True,
        "noFallthroughCasesInSwitch": True,
        "baseUrl": ".",
        "paths": {"@/*": ["./client/src/*"], "@shared/*": ["./shared/*"]},
    },
    "include": ["client/src", "shared"],
    "references": [{"path": "./tsconfig.server.json"}],
}

TSCONFIG_SERVER = {
    "compilerOptions": {
        "target": "ES2020",
        "module": "ESNext",
        "moduleResolution": "bundler",
        "outDir": "./dist/server",
        "rootDir": "./server",
        "strict": True,
        "esModuleInterop": True,
        "skipLibCheck": True,
        "baseUrl": ".",
        "paths": {"@shared/*": ["./shared/*"]},
    },
    "include": ["server"],
    "exclude": ["node_modules"],
}

# (path, template, language, category)
FRONTEND_TEMPLATES = (
    ("client/src/App.tsx", "client/App.tsx.j2", "typescript", "frontend"),
    ("client/src/pages/Home.tsx", "client/pages/Home.tsx.j2", "typescript", "frontend"),
    ("client/src/pages/Login.tsx", "client/pages/Login.tsx.j2", "typescript", "frontend"),
    ("client/src/pages/Register.tsx", "client/pages/Register.tsx.j2", "typescript", "frontend"),
    ("client/src/pages/Dashboard.tsx", "client/pages/Dashboard.tsx.j2", "typescript", "frontend"),
    ("client/src/lib/queryClient.ts", "client/lib/queryClient.ts.j2", "typescript", "frontend"),
    ("client/src/hooks/use-toast.ts", "client/hooks/use-toast.ts.j2", "typescript", "frontend"),
    ("tailwind.config.ts", "tailwind.config.ts.j2", "typescript", "config"),
    ("vite.config.ts", "vite.config.ts.j2", "typescript", "config"),
    ("client/src/index.css", "client/index.css.j2", "css", "frontend"),
    ("client/src/main.tsx", "client/main.tsx.j2", "typescript", "frontend"),
    ("index.html", "index.html.j2", "html", "frontend"),
)


def generate_frontend(p: ScaffoldParams) -> list[GeneratedFile]:
    files = [_template_file(path, tpl, p, language, category) for path, tpl, language, category in FRONTEND_TEMPLATES]
    files.append(_json_file("tsconfig.json", TSCONFIG))
    files.append(_json_file("tsconfig.server.json", TSCONFIG_SERVER))
    files.append(_template_file("drizzle.config.ts", "drizzle.config.ts.j2", p, "typescript", "config"))
    files.append(_template_file("server/db.ts", "server/db.ts.j2", p, "typescript", "backend"))
    return files


def generate_readme(p: ScaffoldParams) -> list[GeneratedFile]:
    return [_template_file("README.md", "README.md.j2", p, "markdown", "docs")]


def generate_subscription_routes(p: ScaffoldParams) -> list[GeneratedFile]:
    return [_template_file(
        "server/routes/subscriptions.ts", "server/routes/subscriptions.ts.j2", p, "typescript", "backend",
    )]


def generate_payment_webhooks(p: ScaffoldParams) -> list[GeneratedFile]:
    return [_template_file("server/routes/webhooks.ts", "server/routes/webhooks.ts.j2", p, "typescript", "backend")]


BASE_GENERATORS = (
    generate_package_json,
    generate_schema,
    generate_auth_routes,
    generate_server,
    generate_env_template,
    generate_container_files,
    generate_frontend,
    generate_readme,
)


# ══════════════════════════════════════════════════════════════════════════════
# Entry point
# ══════════════════════════════════════════════════════════════════════════════


def generate_platform_code(spec: PlatformSpec) -> list[GeneratedFile]:
    """
    Render the full scaffold for ``spec``.

    Raises:
        BuildError: two generators produced the same file path.
    """
    params = ScaffoldParams.from_spec(spec)

    generators = list(BASE_GENERATORS)
    if params.has_subscriptions:
        generators.append(generate_subscription_routes)
    if params.has_payments:
        generators.append(generate_payment_webhooks)

    files: list[GeneratedFile] = []
    seen: set[str] = set()
    for generator in generators:
        for generated in generator(params):
            if generated.file_path in seen:
                raise BuildError(f"Duplicate file path generated: {generated.file_path}")
            seen.add(generated.file_path)
            files.append(generated)

    logger.debug("Generated %d files for %s", len(files), params.slug)
    return files
