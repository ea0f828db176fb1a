"""Tweet reply endpoints (`/api/twitter`)."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from social_feature_orchestrator.server import dependencies as deps
from social_feature_orchestrator.server.models import TweetRepliesRequest
from social_feature_orchestrator.social.replies import extract_tweet_id

router = APIRouter()


@router.post("/replies")
def replies(request: Request, payload: TweetRepliesRequest) -> dict[str, object]:
    tweet_id = extract_tweet_id(payload.url)
    if tweet_id is None:
        raise HTTPException(status_code=400, detail="Unable to extract tweet ID from URL")

    found = deps.services(request).replies.get_replies(tweet_id, payload.count)
    return {
        "success": True,
        "data": {
            "tweetId": tweet_id,
            "totalReplies": len(found),
            "replies": [r.model_dump(mode="json") for r in found],
        },
    }
