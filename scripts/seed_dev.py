#!/usr/bin/env python
"""Seed development database with fixture data.

Creates a dev user with one published AI post and one completed, unpublished
generation, then prints a bearer token for that user.

Constraints:
- Refuses to run in staging or prod (LEELAAVERSE_ENV check)
- Idempotent via ON CONFLICT DO NOTHING
- Never runs automatically (manual invocation only)

Usage:
    cd python && DATABASE_URL=... JWT_SECRET=... python ../scripts/seed_dev.py
"""

import json
import os
import sys


def main():
    env = os.getenv("LEELAAVERSE_ENV", "local")
    if env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in LEELAAVERSE_ENV={env}")
        sys.exit(1)

    database_url = os.getenv("DATABASE_URL")
    jwt_secret = os.getenv("JWT_SECRET")
    if not database_url or not jwt_secret:
        print("ERROR: DATABASE_URL and JWT_SECRET environment variables must be set")
        sys.exit(1)

    import jwt
    from sqlalchemy import create_engine, text

    from tests.fixtures import (
        FIXTURE_IMAGE_URL,
        FIXTURE_JOB_ID,
        FIXTURE_POST_ID,
        FIXTURE_PROMPT,
        FIXTURE_UNPOSTED_JOB_ID,
        FIXTURE_USER_ID,
        fixture_parameters,
    )

    engine = create_engine(database_url)
    parameters = json.dumps(fixture_parameters())

    with engine.connect() as conn:
        conn.execute(
            text("""
                INSERT INTO users (id, username, total_creations)
                VALUES (:user_id, 'dev', 1)
                ON CONFLICT (id) DO NOTHING
            """),
            {"user_id": FIXTURE_USER_ID},
        )

        result = conn.execute(
            text("""
                INSERT INTO posts (id, author_id, category, caption, title, media_url,
                                   thumbnail_url, media_type, ai_generated, ai_provenance)
                VALUES (:post_id, :user_id, 'image', :caption, 'AI Generated Image',
                        :image_url, :image_url, 'image/jpeg', true, CAST(:provenance AS jsonb))
                ON CONFLICT (id) DO NOTHING
                RETURNING id
            """),
            {
                "post_id": FIXTURE_POST_ID,
                "user_id": FIXTURE_USER_ID,
                "caption": f"AI generated image: {FIXTURE_PROMPT}",
                "image_url": FIXTURE_IMAGE_URL,
                "provenance": json.dumps(
                    {
                        "model": "flux-schnell",
                        "model_name": "FLUX Schnell",
                        "prompt": FIXTURE_PROMPT,
                        "parameters": fixture_parameters(),
                        "seed": 42,
                    }
                ),
            },
        )
        post_created = result.fetchone() is not None

        for job_id, post_id in ((FIXTURE_JOB_ID, FIXTURE_POST_ID), (FIXTURE_UNPOSTED_JOB_ID, None)):
            conn.execute(
                text("""
                    INSERT INTO ai_generations (external_job_id, user_id, model, model_name,
                                                prompt, parameters, status, result_url, seed,
                                                post_id, completed_at)
                    VALUES (:job_id, :user_id, 'flux-schnell', 'FLUX Schnell', :prompt,
                            CAST(:parameters AS jsonb), 'completed', :image_url, 42,
                            :post_id, now())
                    ON CONFLICT (external_job_id) DO NOTHING
                """),
                {
                    "job_id": job_id,
                    "user_id": FIXTURE_USER_ID,
                    "prompt": FIXTURE_PROMPT,
                    "parameters": parameters,
                    "image_url": FIXTURE_IMAGE_URL,
                    "post_id": post_id,
                },
            )

        conn.commit()

    print(f"Seeded user {FIXTURE_USER_ID} ({'new post' if post_created else 'already seeded'})")
    token = jwt.encode({"sub": FIXTURE_USER_ID}, jwt_secret, algorithm="HS256")
    print(f"Bearer token: {token}")


if __name__ == "__main__":
    main()
