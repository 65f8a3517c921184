"""
A/B Testing Endpoints (ab_testing feature)

POST /api/experiments                      Create an experiment on my poll
GET  /api/experiments/poll/{poll_id}       Experiments on my poll, with variants
POST /api/experiments/{id}/assign          Variant for this voter (public)
GET  /api/experiments/{id}/results         Assignment / conversion counts
POST /api/experiments/{id}/toggle          Pause or resume
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from jury.api.common import owned_poll, user_tier
from jury.db.client import get_db
from jury.db.experiments import (
    assign_variant,
    create_experiment,
    experiment_results,
    get_experiment,
    get_variants,
    list_poll_experiments,
    set_experiment_active,
)
from jury.models.requests import ExperimentCreateRequest, VariantAssignRequest
from jury.utils.auth import CurrentUser, get_current_user, get_optional_user
from jury.utils.feature_gate import require_feature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/experiments", tags=["A/B Testing"])


def _experiment_or_404(db: Client, experiment_id: str) -> dict:
    experiment = get_experiment(db, experiment_id)
    if experiment is None:
        raise HTTPException(status_code=404, detail="Experiment not found")
    return experiment


def _owned_experiment(db: Client, experiment_id: str, user: CurrentUser) -> dict:
    experiment = _experiment_or_404(db, experiment_id)
    owned_poll(db, experiment["poll_id"], user, with_structure=False)
    return experiment


@router.post("", status_code=201)
async def create(body: ExperimentCreateRequest, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    owned_poll(db, body.poll_id, user, with_structure=False)
    require_feature(user_tier(db, user), "ab_testing")

    names = [v.variant_name.strip() for v in body.variants]
    if len(set(names)) != len(names):
        raise HTTPException(status_code=400, detail="Variant names must be unique")

    return create_experiment(
        db,
        body.poll_id,
        body.name.strip(),
        body.traffic_split,
        [v.model_dump() for v in body.variants],
    )


@router.get("/poll/{poll_id}")
async def poll_experiments(poll_id: str, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    owned_poll(db, poll_id, user, with_structure=False)
    experiments = list_poll_experiments(db, poll_id)
    return {"experiments": [{**e, "variants": get_variants(db, e["id"])} for e in experiments]}


@router.post("/{experiment_id}/assign")
async def assign(
    experiment_id: str,
    body: VariantAssignRequest,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Client = Depends(get_db),
):
    experiment = _experiment_or_404(db, experiment_id)
    if not experiment.get("is_active"):
        raise HTTPException(status_code=404, detail="Experiment is not active")

    user_id = user.id if user else None
    if not user_id and not body.voter_fingerprint:
        raise HTTPException(status_code=400, detail="A voter fingerprint is required for anonymous voters")

    variant = assign_variant(db, experiment_id, user_id=user_id, voter_fingerprint=body.voter_fingerprint)
    if variant is None:
        logger.warning(f"⚠️ assign_variant returned no variant for experiment {experiment_id}")
        raise HTTPException(status_code=404, detail="No variant available")
    return {"variant": variant}


@router.get("/{experiment_id}/results")
async def results(experiment_id: str, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    _owned_experiment(db, experiment_id, user)
    return experiment_results(db, experiment_id)


@router.post("/{experiment_id}/toggle")
async def toggle(experiment_id: str, user: CurrentUser = Depends(get_current_user), db: Client = Depends(get_db)):
    experiment = _owned_experiment(db, experiment_id, user)
    updated = set_experiment_active(db, experiment_id, not experiment.get("is_active"))
    return {**experiment, **updated}
