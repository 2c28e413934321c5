# File: schemaforge/__init__.py
"""
Schemaforge - Profile-Driven Code Generator
===========================================

Reflects a database table, resolves a profile's prompts into answers and
renders the profile's target templates into files.

Architecture overview::

    ┌──────────────┐     ┌──────────────────┐     ┌────────────────┐
    │  CLI / Entry │────▶│ ProfileGenerator │────▶│ AnswerResolver │
    │   (cli.py)   │     │  (generator.py)  │     │  (prompts.py)  │
    └──────────────┘     └────────┬─────────┘     └────────────────┘
                                  │
                 ┌────────────────┼────────────────┐
                 ▼                ▼                ▼
          ┌────────────┐  ┌───────────────┐  ┌────────────┐
          │  context   │  │TargetScheduler│  │TargetEmitter│
          │   (.py)    │  │ (targets.py)  │  │(emitter.py)│
          └────────────┘  └───────────────┘  └────────────┘

Usage::

    from schemaforge import ProfileGenerator, Profile, load_schema_file

    profile = Profile.load("Schemaforge.toml")
    generator = ProfileGenerator.for_profile(profile, target_dir=Path("out"))
    report = generator.run(load_schema_file("schema.yaml"), "clients",
                           profile.prompts, profile.targets,
                           {"password_reset": "1"})
    print(report.summary())

    # From the command line
    schemaforge run clients --set password_reset=1
"""

from __future__ import annotations

__version__: str = "0.4.0"
__license__: str = "MIT"

from schemaforge.context import TemplateContext, build
from schemaforge.emitter import (
    EmitResult,
    ExitResult,
    NullCommandExecutor,
    ShellCommandExecutor,
    TargetEmitter,
)
from schemaforge.errors import (
    FormatterError,
    IoError,
    ProfileError,
    PromptError,
    ReflectionError,
    RenderError,
    SchemaError,
    SchemaForgeError,
    TargetError,
)
from schemaforge.generator import ProfileGenerator, RunReport, SuccessPolicy
from schemaforge.models import (
    Column,
    Constraint,
    DatabaseSchema,
    Index,
    Profile,
    ProfileOverrides,
    ProfileSettings,
    PromptDeclaration,
    Table,
    TargetDeclaration,
)
from schemaforge.prompts import AnswerResolver, ConsoleCollector, NonInteractiveCollector
from schemaforge.reflection import load_schema_file, reflect_database
from schemaforge.rendering import Renderer
from schemaforge.targets import ScheduledTarget, TargetScheduler

__all__ = [
    "__version__",
    # models
    "Column",
    "Constraint",
    "DatabaseSchema",
    "Index",
    "Profile",
    "ProfileOverrides",
    "ProfileSettings",
    "PromptDeclaration",
    "Table",
    "TargetDeclaration",
    # pipeline
    "AnswerResolver",
    "ConsoleCollector",
    "NonInteractiveCollector",
    "EmitResult",
    "ExitResult",
    "NullCommandExecutor",
    "ProfileGenerator",
    "Renderer",
    "RunReport",
    "ScheduledTarget",
    "ShellCommandExecutor",
    "SuccessPolicy",
    "TargetEmitter",
    "TargetScheduler",
    "TemplateContext",
    "build",
    "load_schema_file",
    "reflect_database",
    # errors
    "FormatterError",
    "IoError",
    "ProfileError",
    "PromptError",
    "ReflectionError",
    "RenderError",
    "SchemaError",
    "SchemaForgeError",
    "TargetError",
]
