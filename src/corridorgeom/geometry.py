from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jaxtyping import Float, jaxtyped

from .geom_types import typechecker


@jaxtyped(typechecker=typechecker)
def point_segment_param(
    p: Float[Array, "... 2"],
    a: Float[Array, "... 2"],
    b: Float[Array, "... 2"],
    eps: float = 1e-12,
) -> Float[Array, "..."]:
    """
    Clamped parameter in [0,1] of the point on segment ab closest to p.
    p, a, b: (...,2) broadcastable
    """
    ab = b - a
    t = jnp.sum((p - a) * ab, axis=-1) / (jnp.sum(ab * ab, axis=-1) + eps)
    return jnp.clip(t, 0.0, 1.0)


@jaxtyped(typechecker=typechecker)
def point_segment_dist2(
    p: Float[Array, "... 2"],
    a: Float[Array, "... 2"],
    b: Float[Array, "... 2"],
    eps: float = 1e-12,
) -> Float[Array, "..."]:
    t = point_segment_param(p, a, b, eps)
    q = a + t[..., None] * (b - a)
    d = p - q
    return jnp.sum(d * d, axis=-1)


@jaxtyped(typechecker=typechecker)
def polyline_segments_dist2(
    p: Float[Array, "2"],
    x: Float[Array, "N 2"],
) -> Float[Array, "N1"]:
    """Squared distance from p to every edge [x[k], x[k+1]] of a polyline."""
    return point_segment_dist2(p[None, :], x[:-1, :], x[1:, :])


@jaxtyped(typechecker=typechecker)
def polyline_length(
    x: Float[Array, "M 2"],
    *,
    closed: bool = False,
) -> Float[Array, ""]:
    """Polyline length in world units."""

    seg = x[1:, :] - x[:-1, :]
    length = jnp.sum(jnp.linalg.norm(seg, axis=-1))
    if closed:
        length = length + jnp.linalg.norm(x[0, :] - x[-1, :])
    return length


@jaxtyped(typechecker=typechecker)
def turning_angles(
    x: Float[Array, "M 2"],
    eps: float = 1e-9,
) -> Float[Array, "M2"]:
    """
    x: (M,2) polyline samples, M >= 3
    Returns the unsigned turning angle (radians) at each interior vertex: (M-2,)
    """
    u = x[1:-1, :] - x[0:-2, :]
    v = x[2:, :] - x[1:-1, :]
    nu = jnp.linalg.norm(u, axis=-1) + eps
    nv = jnp.linalg.norm(v, axis=-1) + eps
    cos_th = jnp.sum(u * v, axis=-1) / (nu * nv)
    return jnp.arccos(jnp.clip(cos_th, -1.0, 1.0))


@jaxtyped(typechecker=typechecker)
def discrete_curvature(
    x: Float[Array, "M 2"],
    eps: float = 1e-9,
) -> Float[Array, "M2"]:
    """Turning angle per unit length at each interior vertex: (M-2,)"""
    u = x[1:-1, :] - x[0:-2, :]
    v = x[2:, :] - x[1:-1, :]
    ds = 0.5 * (jnp.linalg.norm(u, axis=-1) + jnp.linalg.norm(v, axis=-1))
    return turning_angles(x, eps) / (ds + eps)
