"""Attention heatmaps on a visdom server."""

from typing import Optional, Sequence

import torch


class AttentionVisualizer:
    """Sends the attention of generated hypotheses to visdom.

    Args:
        host: visdom server host.
        port: visdom server port.
        env: visdom environment name.
        vis: Existing ``visdom.Visdom`` client (created if None).
    """

    def __init__(self, host: str, port: int, env: str = "nmtgen", vis=None):
        if vis is None:
            try:
                import visdom
            except ImportError as e:
                raise ImportError(
                    "visdom is required for --visdom: pip install 'nmtgen[visdom]'"
                ) from e
            server = host if host.startswith("http") else f"http://{host}"
            vis = visdom.Visdom(server=server, port=port, env=env)
        self.vis = vis

    def show(
        self,
        source: Sequence[str],
        hypothesis: Sequence[str],
        attention: torch.Tensor,
        title: Optional[str] = None
    ):
        """Plot one hypothesis against its source, end-of-sequence included."""
        rownames = list(hypothesis) + ["</s>"]
        columnnames = list(source) + ["</s>"]

        weights = attention[:len(rownames), :len(columnnames)].float().cpu().numpy()
        rows, cols = weights.shape

        self.vis.heatmap(
            X=weights,
            opts=dict(
                rownames=rownames[:rows],
                columnnames=columnnames[:cols],
                title=title or " ".join(source),
            )
        )
