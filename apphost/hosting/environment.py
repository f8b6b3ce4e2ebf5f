"""
Evaluation of environment and argument callbacks.

Callbacks run in annotation order against a fresh context every time,
so evaluating twice never double-appends. Values collected by the
callbacks are plain strings or value providers; they are resolved in run
mode and rendered as placeholders in publish mode.
"""

from __future__ import annotations

import logging
from typing import Any

from apphost.model.annotations import (
    CommandLineArgsCallbackAnnotation,
    CommandLineArgsCallbackContext,
    EnvironmentCallbackAnnotation,
    EnvironmentCallbackContext,
    invoke_callback,
)
from apphost.model.cancellation import CancellationToken, ensure_token
from apphost.model.context import ExecutionContext
from apphost.model.expressions import resolve_value
from apphost.model.resource import Resource

logger = logging.getLogger(__name__)


class EnvironmentVariableEvaluator:
    """
    Computes a resource's environment variables and arguments.

    Example:
        evaluator = EnvironmentVariableEvaluator(ExecutionContext.run())
        env = await evaluator.get_environment_variables(api)
    """

    def __init__(self, execution_context: ExecutionContext):
        self.execution_context = execution_context

    async def collect_environment(
        self,
        resource: Resource,
        cancellation: CancellationToken | None = None,
    ) -> dict[str, Any]:
        """Run environment callbacks; values are left unresolved."""
        token = ensure_token(cancellation)
        context = EnvironmentCallbackContext(
            execution_context=self.execution_context,
            environment_variables={},
            cancellation=token,
        )
        for annotation in resource.annotations.query_all(EnvironmentCallbackAnnotation):
            token.throw_if_cancellation_requested()
            await invoke_callback(annotation.callback, context)
        return context.environment_variables

    async def collect_arguments(
        self,
        resource: Resource,
        cancellation: CancellationToken | None = None,
    ) -> list[Any]:
        """Run argument callbacks; values are left unresolved."""
        token = ensure_token(cancellation)
        context = CommandLineArgsCallbackContext(
            args=[],
            execution_context=self.execution_context,
            cancellation=token,
        )
        for annotation in resource.annotations.query_all(CommandLineArgsCallbackAnnotation):
            token.throw_if_cancellation_requested()
            await invoke_callback(annotation.callback, context)
        return context.args

    async def get_environment_variables(
        self,
        resource: Resource,
        cancellation: CancellationToken | None = None,
    ) -> dict[str, str]:
        """
        Environment variables for ``resource``, in insertion order.

        Raises:
            MissingValueError: If a referenced value is not available (run mode)
        """
        token = ensure_token(cancellation)
        raw = await self.collect_environment(resource, token)
        resolved: dict[str, str] = {}
        for name, value in raw.items():
            rendered = await resolve_value(value, self.execution_context, token)
            if rendered is not None:
                resolved[name] = rendered
        logger.debug(f"[environment] {resource.name}: {len(resolved)} variable(s)")
        return resolved

    async def get_arguments(
        self,
        resource: Resource,
        cancellation: CancellationToken | None = None,
    ) -> list[str]:
        token = ensure_token(cancellation)
        raw = await self.collect_arguments(resource, token)
        resolved: list[str] = []
        for value in raw:
            rendered = await resolve_value(value, self.execution_context, token)
            if rendered is not None:
                resolved.append(rendered)
        return resolved
