"""Project scaffolds: minimal React and Express starters plus a fullstack pair."""

import json
import re
from pathlib import Path
from typing import Callable, Dict, List, Tuple

from .file_ops import FileOperationError
from .types import ToolResult

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,99}$")


def _package_json(name: str, description: str, scripts: dict,
                  deps: dict, dev_deps: dict, **extra) -> str:
    data = {
        "name": name,
        "version": "0.1.0",
        "private": True,
        "description": description,
        **extra,
        "scripts": scripts,
        "dependencies": deps,
        "devDependencies": dev_deps,
    }
    return json.dumps(data, indent=2) + "\n"


def _react_files(name: str, description: str) -> Dict[str, str]:
    return {
        "package.json": _package_json(
            name, description,
            scripts={"dev": "vite", "build": "tsc && vite build", "test": "vitest run"},
            deps={"react": "^18.3.1", "react-dom": "^18.3.1"},
            dev_deps={"@vitejs/plugin-react": "^4.3.1", "typescript": "^5.5.4",
                      "vite": "^5.4.0", "vitest": "^2.0.5",
                      "@testing-library/react": "^16.0.0", "jsdom": "^24.1.1"},
            type="module",
        ),
        "vite.config.ts": (
            "import { defineConfig } from 'vite';\n"
            "import react from '@vitejs/plugin-react';\n\n"
            "export default defineConfig({\n"
            "  plugins: [react()],\n"
            "  test: { environment: 'jsdom' },\n"
            "});\n"
        ),
        "index.html": (
            "<!doctype html>\n<html lang=\"en\">\n  <head>\n"
            f"    <meta charset=\"UTF-8\" />\n    <title>{name}</title>\n"
            "  </head>\n  <body>\n    <div id=\"root\"></div>\n"
            "    <script type=\"module\" src=\"/src/main.tsx\"></script>\n"
            "  </body>\n</html>\n"
        ),
        "src/main.tsx": (
            "import React from 'react';\n"
            "import ReactDOM from 'react-dom/client';\n"
            "import App from './App';\n\n"
            "ReactDOM.createRoot(document.getElementById('root')!).render(\n"
            "  <React.StrictMode>\n    <App />\n  </React.StrictMode>,\n);\n"
        ),
        "src/App.tsx": (
            "export default function App() {\n"
            f"  return <h1>{name}</h1>;\n"
            "}\n"
        ),
        "src/App.test.tsx": (
            "import { render, screen } from '@testing-library/react';\n"
            "import { expect, test } from 'vitest';\n"
            "import App from './App';\n\n"
            "test('renders the title', () => {\n"
            "  render(<App />);\n"
            f"  expect(screen.getByText('{name}')).toBeTruthy();\n"
            "});\n"
        ),
        ".gitignore": "node_modules\ndist\n",
    }


def _express_files(name: str, description: str) -> Dict[str, str]:
    return {
        "package.json": _package_json(
            name, description,
            scripts={"dev": "tsx watch src/index.ts", "build": "tsc", "test": "vitest run"},
            deps={"express": "^4.19.2", "cors": "^2.8.5"},
            dev_deps={"@types/express": "^4.17.21", "@types/cors": "^2.8.17",
                      "supertest": "^7.0.0", "tsx": "^4.16.5",
                      "typescript": "^5.5.4", "vitest": "^2.0.5"},
        ),
        "src/app.ts": (
            "import express from 'express';\n"
            "import cors from 'cors';\n"
            "import { healthRouter } from './routes/health';\n\n"
            "export const app = express();\n"
            "app.use(cors());\n"
            "app.use(express.json());\n"
            "app.use('/api/health', healthRouter);\n"
        ),
        "src/index.ts": (
            "import { app } from './app';\n\n"
            "const port = Number(process.env.PORT ?? 3001);\n"
            "app.listen(port, () => console.log(`listening on ${port}`));\n"
        ),
        "src/routes/health.ts": (
            "import { Router } from 'express';\n\n"
            "export const healthRouter = Router();\n"
            "healthRouter.get('/', (_req, res) => res.json({ status: 'ok' }));\n"
        ),
        "tests/health.test.ts": (
            "import request from 'supertest';\n"
            "import { expect, test } from 'vitest';\n"
            "import { app } from '../src/app';\n\n"
            "test('GET /api/health', async () => {\n"
            "  const res = await request(app).get('/api/health');\n"
            "  expect(res.status).toBe(200);\n"
            "});\n"
        ),
        ".env.example": "PORT=3001\n",
        ".gitignore": "node_modules\ndist\n.env\n",
    }


# name -> (category, file builder)
TEMPLATES: Dict[str, Tuple[str, Callable[[str, str], Dict[str, str]]]] = {
    "react": ("frontend", _react_files),
    "express": ("backend", _express_files),
}


class TemplateGenerator:
    """Writes template file trees under ``project_root``."""

    def __init__(self, project_root: str):
        self.project_root = Path(project_root).resolve()

    def list_templates(self) -> str:
        lines = ["Available templates:", ""]
        for name, (category, _) in TEMPLATES.items():
            lines.append(f"- {name} ({category})")
        lines.append("- fullstack (creates both React frontend and Express backend)")
        return "\n".join(lines)

    def generate(self, template: str, project_name: str, description: str = "") -> ToolResult:
        template = (template or "").strip().lower()
        if not _NAME_RE.match(project_name or ""):
            return ToolResult.fail(f"Invalid project name: {project_name!r}")

        if template == "fullstack":
            halves = [
                (f"{project_name}-frontend", "react", f"{description or project_name} - Frontend"),
                (f"{project_name}-backend", "express", f"{description or project_name} - Backend API"),
            ]
            # Both halves are checked before either is written.
            targets = [self._target(directory) for directory, _, _ in halves]
            created = []
            for target, (directory, name, desc) in zip(targets, halves):
                created += self._write(target, directory, name, desc)
            return ToolResult.ok(
                f'Successfully generated fullstack project "{project_name}"!\n\n'
                f"Created {len(created)} files:\n"
                f"Frontend: {project_name}-frontend/\n"
                f"Backend: {project_name}-backend/\n"
            )

        if template not in TEMPLATES:
            available = ", ".join(TEMPLATES)
            return ToolResult.fail(f'Template "{template}" not found. Available: {available}, fullstack')

        created = self._write(self._target(project_name), project_name, template,
                              description or project_name)
        listing = "\n".join(f"  - {f}" for f in created)
        return ToolResult.ok(
            f'Successfully generated {template} project "{project_name}"!\n\n'
            f"Created {len(created)} files:\n{listing}\n"
        )

    def _target(self, directory: str) -> Path:
        target = (self.project_root / directory).resolve()
        try:
            target.relative_to(self.project_root)
        except ValueError:
            raise FileOperationError(f"Access denied: '{directory}' is outside project root")
        if target.exists() and any(target.iterdir()):
            raise FileOperationError(f"Directory already exists and is not empty: {directory}")
        return target

    def _write(self, target: Path, directory: str, template: str, description: str) -> List[str]:
        _, build = TEMPLATES[template]
        created = []
        for rel, content in build(directory, description).items():
            fp = target / rel
            fp.parent.mkdir(parents=True, exist_ok=True)
            fp.write_text(content, encoding="utf-8")
            created.append(f"{directory}/{rel}")
        return created
