# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Decoder-only transformer trained by tinyclm.

  - token embedding tied to the LM head
  - pre-norm blocks: RMSNorm, causal attention with RoPE, SwiGLU
  - final RMSNorm, logits over the vocabulary
"""
