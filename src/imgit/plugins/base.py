"""Plugin contract for the build phase.

A plugin contributes ordered resolvers and builders. For each asset the
chains are evaluated first-match-wins: the first strategy returning
``Handled`` supplies the value and later strategies are skipped; when none
handles the asset the default per-type path runs.

Strategies are async callables ``(asset, ctx) -> Handled | NotHandled``.
Resolvers produce an ``AssetContent``, builders produce the markup string.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
import dataclasses
from typing import TYPE_CHECKING, Any, Final, Generic, TypeAlias, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable

    from imgit.asset import AssetContent, BuiltAsset, ResolvedAsset
    from imgit.context import Context

T = TypeVar("T")


@dataclasses.dataclass(frozen=True, slots=True)
class Handled(Generic[T]):
    """The strategy took responsibility for the asset."""

    value: T


@dataclasses.dataclass(frozen=True, slots=True)
class NotHandled:
    """The strategy does not apply to the asset; try the next one."""


NOT_HANDLED: Final = NotHandled()

Outcome: TypeAlias = Handled[T] | NotHandled

Resolver = Callable[["ResolvedAsset", "Context"], Awaitable["Outcome[AssetContent]"]]
Builder = Callable[["BuiltAsset", "Context"], Awaitable["Outcome[str]"]]


@dataclasses.dataclass(frozen=True)
class Plugin:
    """Resolvers and builders contributed by an extension.

    ``cache`` lists the cache categories the plugin keeps in the shared
    store; they are registered before the store is loaded.
    """

    name: str
    resolvers: tuple[Resolver, ...] = ()
    builders: tuple[Builder, ...] = ()
    cache: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate strategy shapes early for clear errors."""
        from imgit.errors import PluginError

        if not self.name:
            raise PluginError("Plugin name must be a non-empty string")
        for kind, chain in (("resolver", self.resolvers), ("builder", self.builders)):
            for fn in chain:
                if not callable(fn):
                    raise PluginError(
                        f"Plugin {self.name!r} registered a non-callable {kind}: {fn!r}",
                        hint="Strategies are async callables taking (asset, ctx).",
                    )


async def first_handled(
    chain: Iterable[Callable[[Any, Context], Awaitable[Outcome[T]]]],
    asset: Any,
    ctx: Context,
) -> Handled[T] | None:
    """Evaluate *chain* in order; return the first ``Handled`` or None."""
    for strategy in chain:
        outcome = await strategy(asset, ctx)
        if isinstance(outcome, Handled):
            return outcome
    return None
