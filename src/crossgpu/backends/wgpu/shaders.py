"""
CrossGPU WGSL Compute Shaders

Shader sources for the kernel catalogue. Every shader has a `main` entry
point, reads f32 storage buffers, and takes its sizes from a uniform
Params struct whose layout matches the struct format next to it.

Row-parallel shaders (layer norm, softmax) run one workgroup per row and
recover the row index from a 2-D grid so more than 65535 rows fit in a
single dispatch. Matmul does the same with its row tiles over y and z.
"""
from __future__ import annotations

from typing import Final

WORKGROUP_SIZE: Final[int] = 256
MATMUL_TILE: Final[int] = 16
ATTENTION_WORKGROUP_SIZE: Final[int] = 64

# GELU tanh approximation: sqrt(2 / pi)
_GELU_FN = """
fn gelu(v: f32) -> f32 {
    let inner = 0.7978845608028654 * (v + 0.044715 * v * v * v);
    return 0.5 * v * (1.0 + tanh(inner));
}
"""

# Params: n, pad, pad, pad
GELU_PARAMS: Final[str] = "<IIII"
GELU = _GELU_FN + """
struct Params {
    n: u32,
    _p0: u32,
    _p1: u32,
    _p2: u32,
}

@group(0) @binding(0)
var<storage, read> x: array<f32>;
@group(0) @binding(1)
var<storage, read_write> out: array<f32>;
@group(0) @binding(2)
var<uniform> params: Params;

@compute @workgroup_size(256)
fn main(
    @builtin(local_invocation_id) lid: vec3<u32>,
    @builtin(workgroup_id) wid: vec3<u32>,
    @builtin(num_workgroups) nwg: vec3<u32>,
) {
    let idx = (wid.y * nwg.x + wid.x) * 256u + lid.x;
    if (idx < params.n) {
        out[idx] = gelu(x[idx]);
    }
}
"""

# Params: m, k, n, flags (bit 0 = add bias, bit 1 = apply gelu)
MATMUL_PARAMS: Final[str] = "<IIII"
MATMUL_FLAG_BIAS: Final[int] = 1
MATMUL_FLAG_GELU: Final[int] = 2
MATMUL = _GELU_FN + """
struct Params {
    m: u32,
    k: u32,
    n: u32,
    flags: u32,
}

@group(0) @binding(0)
var<storage, read> a: array<f32>;
@group(0) @binding(1)
var<storage, read> b: array<f32>;
@group(0) @binding(2)
var<storage, read> bias: array<f32>;
@group(0) @binding(3)
var<storage, read_write> out: array<f32>;
@group(0) @binding(4)
var<uniform> params: Params;

var<workgroup> tile_a: array<f32, 256>;
var<workgroup> tile_b: array<f32, 256>;

@compute @workgroup_size(16, 16)
fn main(
    @builtin(local_invocation_id) lid: vec3<u32>,
    @builtin(workgroup_id) wid: vec3<u32>,
    @builtin(num_workgroups) nwg: vec3<u32>,
) {
    let row = (wid.z * nwg.y + wid.y) * 16u + lid.y;
    let col = wid.x * 16u + lid.x;

    var acc = 0.0;
    for (var t = 0u; t < params.k; t = t + 16u) {
        let a_col = t + lid.x;
        var av = 0.0;
        if (row < params.m && a_col < params.k) {
            av = a[row * params.k + a_col];
        }
        tile_a[lid.y * 16u + lid.x] = av;

        let b_row = t + lid.y;
        var bv = 0.0;
        if (b_row < params.k && col < params.n) {
            bv = b[b_row * params.n + col];
        }
        tile_b[lid.y * 16u + lid.x] = bv;

        workgroupBarrier();
        for (var i = 0u; i < 16u; i = i + 1u) {
            acc = acc + tile_a[lid.y * 16u + i] * tile_b[i * 16u + lid.x];
        }
        workgroupBarrier();
    }

    if (row < params.m && col < params.n) {
        if ((params.flags & 1u) != 0u) {
            acc = acc + bias[col];
        }
        if ((params.flags & 2u) != 0u) {
            acc = gelu(acc);
        }
        out[row * params.n + col] = acc;
    }
}
"""

# Params: rows, width, eps, pad
LAYER_NORM_PARAMS: Final[str] = "<IIfI"
LAYER_NORM = """
struct Params {
    rows: u32,
    width: u32,
    eps: f32,
    _p0: u32,
}

@group(0) @binding(0)
var<storage, read> x: array<f32>;
@group(0) @binding(1)
var<storage, read> gamma: array<f32>;
@group(0) @binding(2)
var<storage, read> beta: array<f32>;
@group(0) @binding(3)
var<storage, read_write> out: array<f32>;
@group(0) @binding(4)
var<uniform> params: Params;

var<workgroup> partial: array<f32, 256>;

@compute @workgroup_size(256)
fn main(
    @builtin(local_invocation_id) lid: vec3<u32>,
    @builtin(workgroup_id) wid: vec3<u32>,
    @builtin(num_workgroups) nwg: vec3<u32>,
) {
    let row = wid.y * nwg.x + wid.x;
    if (row >= params.rows) {
        return;
    }
    let tid = lid.x;
    let width = params.width;
    let base = row * width;

    var acc = 0.0;
    for (var c = tid; c < width; c = c + 256u) {
        acc = acc + x[base + c];
    }
    partial[tid] = acc;
    workgroupBarrier();
    for (var s = 128u; s > 0u; s = s >> 1u) {
        if (tid < s) {
            partial[tid] = partial[tid] + partial[tid + s];
        }
        workgroupBarrier();
    }
    let mean = partial[0] / f32(width);
    workgroupBarrier();

    var sq = 0.0;
    for (var c = tid; c < width; c = c + 256u) {
        let d = x[base + c] - mean;
        sq = sq + d * d;
    }
    partial[tid] = sq;
    workgroupBarrier();
    for (var s = 128u; s > 0u; s = s >> 1u) {
        if (tid < s) {
            partial[tid] = partial[tid] + partial[tid + s];
        }
        workgroupBarrier();
    }
    let inv_std = inverseSqrt(partial[0] / f32(width) + params.eps);

    for (var c = tid; c < width; c = c + 256u) {
        out[base + c] = (x[base + c] - mean) * inv_std * gamma[c] + beta[c];
    }
}
"""

# Params: rows, width, pad, pad
SOFTMAX_PARAMS: Final[str] = "<IIII"
SOFTMAX = """
struct Params {
    rows: u32,
    width: u32,
    _p0: u32,
    _p1: u32,
}

@group(0) @binding(0)
var<storage, read> x: array<f32>;
@group(0) @binding(1)
var<storage, read_write> out: array<f32>;
@group(0) @binding(2)
var<uniform> params: Params;

var<workgroup> partial: array<f32, 256>;

@compute @workgroup_size(256)
fn main(
    @builtin(local_invocation_id) lid: vec3<u32>,
    @builtin(workgroup_id) wid: vec3<u32>,
    @builtin(num_workgroups) nwg: vec3<u32>,
) {
    let row = wid.y * nwg.x + wid.x;
    if (row >= params.rows) {
        return;
    }
    let tid = lid.x;
    let width = params.width;
    let base = row * width;

    var local_max = -3.4028235e38;
    for (var c = tid; c < width; c = c + 256u) {
        local_max = max(local_max, x[base + c]);
    }
    partial[tid] = local_max;
    workgroupBarrier();
    for (var s = 128u; s > 0u; s = s >> 1u) {
        if (tid < s) {
            partial[tid] = max(partial[tid], partial[tid + s]);
        }
        workgroupBarrier();
    }
    let row_max = partial[0];
    workgroupBarrier();

    var local_sum = 0.0;
    for (var c = tid; c < width; c = c + 256u) {
        let e = exp(x[base + c] - row_max);
        out[base + c] = e;
        local_sum = local_sum + e;
    }
    partial[tid] = local_sum;
    workgroupBarrier();
    for (var s = 128u; s > 0u; s = s >> 1u) {
        if (tid < s) {
            partial[tid] = partial[tid] + partial[tid + s];
        }
        workgroupBarrier();
    }
    let total = partial[0];

    for (var c = tid; c < width; c = c + 256u) {
        out[base + c] = out[base + c] / total;
    }
}
"""

# Params: rows, seq_q, seq_k, head_dim, head_dim_v, causal, scale, pad
ATTENTION_PARAMS: Final[str] = "<IIIIIIfI"
ATTENTION = """
struct Params {
    rows: u32,
    seq_q: u32,
    seq_k: u32,
    head_dim: u32,
    head_dim_v: u32,
    causal: u32,
    scale: f32,
    _p0: u32,
}

@group(0) @binding(0)
var<storage, read> q: array<f32>;
@group(0) @binding(1)
var<storage, read> k: array<f32>;
@group(0) @binding(2)
var<storage, read> v: array<f32>;
@group(0) @binding(3)
var<storage, read_write> out: array<f32>;
@group(0) @binding(4)
var<uniform> params: Params;

fn score(q_base: u32, k_base: u32) -> f32 {
    var acc = 0.0;
    for (var c = 0u; c < params.head_dim; c = c + 1u) {
        acc = acc + q[q_base + c] * k[k_base + c];
    }
    return acc * params.scale;
}

@compute @workgroup_size(64)
fn main(
    @builtin(local_invocation_id) lid: vec3<u32>,
    @builtin(workgroup_id) wid: vec3<u32>,
    @builtin(num_workgroups) nwg: vec3<u32>,
) {
    let row = (wid.y * nwg.x + wid.x) * 64u + lid.x;
    if (row >= params.rows) {
        return;
    }
    let batch = row / params.seq_q;
    let i = row % params.seq_q;
    let q_base = row * params.head_dim;
    let k_base = batch * params.seq_k * params.head_dim;
    let v_base = batch * params.seq_k * params.head_dim_v;
    let o_base = row * params.head_dim_v;

    var limit = params.seq_k;
    if (params.causal != 0u) {
        limit = min(params.seq_k, i + 1u);
    }

    var m = -3.4028235e38;
    for (var j = 0u; j < limit; j = j + 1u) {
        m = max(m, score(q_base, k_base + j * params.head_dim));
    }

    for (var c = 0u; c < params.head_dim_v; c = c + 1u) {
        out[o_base + c] = 0.0;
    }
    var denom = 0.0;
    for (var j = 0u; j < limit; j = j + 1u) {
        let w = exp(score(q_base, k_base + j * params.head_dim) - m);
        denom = denom + w;
        for (var c = 0u; c < params.head_dim_v; c = c + 1u) {
            out[o_base + c] = out[o_base + c] + w * v[v_base + j * params.head_dim_v + c];
        }
    }
    if (denom > 0.0) {
        for (var c = 0u; c < params.head_dim_v; c = c + 1u) {
            out[o_base + c] = out[o_base + c] / denom;
        }
    }
}
"""

# name -> (source, binding access modes)
SHADERS: Final[dict[str, tuple[str, tuple[str, ...]]]] = {
    "gelu": (GELU, ("read", "read_write", "uniform")),
    "matmul": (MATMUL, ("read", "read", "read", "read_write", "uniform")),
    "layer_norm": (LAYER_NORM, ("read", "read", "read", "read_write", "uniform")),
    "softmax": (SOFTMAX, ("read", "read_write", "uniform")),
    "attention": (ATTENTION, ("read", "read", "read", "read_write", "uniform")),
}
