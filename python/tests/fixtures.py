"""Fixture constants shared by tests and scripts/seed_dev.py."""

FIXTURE_USER_ID = "5b0c4c57-8f0e-4f57-9a55-2f1b6f3c2d10"
FIXTURE_POST_ID = "c2f6a9d1-3b7e-4d0a-8e6f-91a4d2b7c8e5"
FIXTURE_JOB_ID = "fal-req-seed-0001"
FIXTURE_UNPOSTED_JOB_ID = "fal-req-seed-0002"
FIXTURE_PROMPT = "A cat in space"
FIXTURE_IMAGE_URL = "https://v3.fal.media/files/seed/cat-in-space.jpg"


def fixture_parameters() -> dict:
    return {
        "aspect_ratio": "16:9",
        "image_size": "landscape_16_9",
        "num_inference_steps": 4,
        "guidance_scale": 3.5,
        "style": None,
    }
