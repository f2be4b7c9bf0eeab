from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from .prompts import PromptSet

_GRID = 4
_FULL_WEIGHT = 0.5
_MAX_ALPHA = 0.6


class GradientLayer(BaseModel):
    """One radial glow centered on a prompt's grid cell."""

    x: float
    y: float
    color: str
    alpha: float
    stop: float

    model_config = ConfigDict(frozen=True, extra="forbid")

    def css(self) -> str:
        alpha = f"{round(self.alpha * 0xFF):02x}"
        return (
            f"radial-gradient(circle at {self.x * 100:g}% {self.y * 100:g}%, "
            f"{self.color}{alpha} 0px, {self.color}00 {self.stop * 100:g}%)"
        )


class BackgroundSummary(BaseModel):
    layers: tuple[GradientLayer, ...]

    model_config = ConfigDict(frozen=True, extra="forbid")

    def css(self) -> str:
        return ", ".join(layer.css() for layer in self.layers)


def summarize_background(prompts: PromptSet) -> BackgroundSummary:
    layers: list[GradientLayer] = []
    for index, prompt in enumerate(prompts.prompts):
        alpha = min(max(prompt.weight / _FULL_WEIGHT, 0.0), 1.0) * _MAX_ALPHA
        layers.append(
            GradientLayer(
                x=(index % _GRID) / (_GRID - 1),
                y=(index // _GRID) / (_GRID - 1),
                color=prompt.color,
                alpha=alpha,
                stop=prompt.weight / 2,
            )
        )
    return BackgroundSummary(layers=tuple(layers))
