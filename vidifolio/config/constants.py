"""
Application Constants Configuration
"""

from typing import Dict, List


# Visual style descriptions used when prompting
STYLE_DESCRIPTIONS: Dict[str, str] = {
    "tech": "standard tech",
    "cyber": "cyberpunk",
    "eco": "eco modern",
}

STYLE_GUIDELINES: Dict[str, str] = {
    "standard tech": "Sleek, minimalistic, high-tech glass/metal, blue and white lighting, clean UI overlays.",
    "cyberpunk": "Neon colors (pink, cyan), night city, rain-slicked streets, futuristic hardware, glitch effects.",
    "eco modern": "Natural daylight, soft greens/browns, organic textures, airy atmosphere, eco-friendly tech.",
}

# Job Timeout
JOB_TIMEOUT_MINUTES: int = 20

# Provider task statuses
PROVIDER_SUCCESS_STATUSES: List[str] = ["succeeded", "success", "completed", "done", "finished"]
PROVIDER_FAILURE_STATUSES: List[str] = ["failed", "canceled", "cancelled", "unknown"]

# Download chunking
DOWNLOAD_CHUNK_SIZE: int = 8192
DOWNLOAD_TIMEOUT_S: float = 300.0

# Segmented generation: one text-to-video call followed by two extensions
SEGMENTED_PART_COUNT: int = 3

# Headroom between the pipeline's own deadline and the RQ job timeout
RQ_JOB_TIMEOUT_MARGIN_S: int = 120
