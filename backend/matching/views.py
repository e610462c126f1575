# pyright: reportMissingImports=false
from __future__ import annotations

import logging

from django.apps import apps
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from . import confirmation
from .serializers import ConfirmSerializer, StartMatchingSerializer, UserTokenSerializer
from .users import MatchingUser

logger = logging.getLogger(__name__)


def _no_store(resp: Response) -> Response:
    resp["Cache-Control"] = "no-store, no-cache, must-revalidate"
    resp["Pragma"] = "no-cache"
    return resp


def _matching():
    return apps.get_app_config("matching")


def _user_token(request) -> str:
    s = UserTokenSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return s.validated_data["userToken"]


def _public(user: MatchingUser | None) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "email": user.email}


class StartMatchingView(APIView):
    def post(self, request):
        s = StartMatchingSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        user = s.to_user()

        cfg = _matching()
        with cfg.lock:
            confirmation.sweep_abandoned(cfg.engine)
            cfg.engine.push(user)
        return _no_store(Response({"message": "matching started"}))


class CheckStateView(APIView):
    """
    Short-poll endpoint. Tries to match the caller with the longest-waiting
    user; a fresh match starts the confirmation handshake for both sides.
    """
    def post(self, request):
        user_token = _user_token(request)

        cfg = _matching()
        with cfg.lock:
            engine = cfg.engine
            confirmation.sweep_abandoned(engine)
            if not engine.is_user_in_matching_service(user_token):
                return _no_store(Response(
                    {"error": "This user does not exist in the matching service."},
                    status=status.HTTP_400_BAD_REQUEST,
                ))

            user = engine.get_user(user_token)
            if user.room_id:
                # both confirmed; the peer may already have left the service
                return _no_store(Response({
                    "message": "match found",
                    "matchedUser": {
                        "id": user.handoff["matchedUserId"],
                        "email": user.handoff["matchedUserEmail"],
                    },
                }))

            is_matched = engine.is_user_matched(user_token)
            if not is_matched and engine.try_match_with(user_token):
                confirmation.begin_confirmation(engine, user_token)
                is_matched = True

            if is_matched:
                return _no_store(Response({
                    "message": "match found",
                    "matchedUser": _public(engine.get_matched_user(user_token)),
                }))

            if engine.is_user_in_confirmation(user_token):
                # pair was dismissed; the outcome is read via check_confirmation_state
                return _no_store(Response({
                    "message": "match dismissed",
                    "confirmationStatus": user.confirmation_status,
                }))
        return _no_store(Response({"message": "matching"}))


class CancelMatchingView(APIView):
    def post(self, request):
        user_token = _user_token(request)

        cfg = _matching()
        with cfg.lock:
            confirmation.withdraw(cfg.engine, user_token)
        return _no_store(Response({"message": "success"}))


class ConfirmMatchView(APIView):
    def post(self, request):
        s = ConfirmSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        user_token = s.validated_data["userToken"]
        accept = s.validated_data["accept"]

        cfg = _matching()
        with cfg.lock:
            state = confirmation.respond(cfg.engine, user_token, accept)
        return _no_store(Response({"confirmationStatus": state}))


class CheckConfirmationStateView(APIView):
    def post(self, request):
        user_token = _user_token(request)

        cfg = _matching()
        with cfg.lock:
            outcome = confirmation.check_confirmation(cfg.engine, user_token)

        return _no_store(Response({
            "confirmationStatus": outcome.status,
            "roomId": outcome.room_id,
            "matchedUser": _public(outcome.matched_user),
            "handoff": outcome.handoff,
        }))


class QueueSnapshotView(APIView):
    def get(self, request):
        cfg = _matching()
        with cfg.lock:
            engine = cfg.engine
            data = {
                "count": engine.length(),
                "userIds": engine.matching_queue.list_user_ids(),
                "emails": engine.matching_queue.list_user_emails(),
                "confirming": engine.confirmation_queue.list_user_ids(),
            }
        return _no_store(Response(data))
