"""
Anchoring server wiring using FastAPI.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from didanchor import __version__
from didanchor.common.config import Config
from didanchor.common.exceptions import ServiceError
from didanchor.common.logging_utils import get_package_logger, setup_logger
from didanchor.ledger.substrate import SubstrateConnector

from .challenge_registry import ChallengeRegistry
from .custody import Custodian
from .domain.attestation_handler import AttestationHandler
from .domain.challenge_handler import ChallengeService, DecryptingChallengeVerifier
from .domain.token_issuer import TokenIssuer
from .domain.transaction_preparer import TransactionPreparer
from .domain.transaction_submitter import TransactionSubmitter
from .guards import RoleGuard
from .resolver import NetworkResolver
from .routes import AnchorRoutes
from .services import AnchorService
from .user_store import JsonUserStore

if TYPE_CHECKING:
    from didanchor.common.interfaces import (
        IChallengeVerifier,
        ILedgerConnector,
        IUserStore,
    )


class AnchorServer:
    """Builds the service graph once and exposes the FastAPI app."""

    def __init__(
        self,
        config: Config | None = None,
        connector: ILedgerConnector | None = None,
        user_store: IUserStore | None = None,
        challenge_verifier: IChallengeVerifier | None = None,
    ):
        self.config = config or Config()
        self.logger = logging.getLogger(__name__)
        setup_logger(get_package_logger(), self.config.LOG_LEVEL)

        token_pub, token_priv = self.config.get_token_keys()
        self.connector = connector or SubstrateConnector(self.config)
        self.custodian = Custodian(self.config)
        self.user_store = user_store or JsonUserStore(self.config.USERS_FILE_PATH)

        # Initialize components
        self.resolver = NetworkResolver(self.connector, self.config.RESOLUTION_ORDER)
        self.challenge_service = ChallengeService(
            config=self.config,
            registry=ChallengeRegistry(
                self.config.CHALLENGE_TTL, self.config.MAX_PENDING_CHALLENGES
            ),
            verifier=challenge_verifier
            or DecryptingChallengeVerifier(self.resolver, self.custodian),
        )
        self.token_issuer = TokenIssuer(
            config=self.config,
            user_store=self.user_store,
            private_key=token_priv,
            public_key=token_pub,
        )
        self.preparer = TransactionPreparer(self.connector, self.custodian)
        self.submitter = TransactionSubmitter(
            self.connector, self.custodian, self.config.FINALIZATION_TIMEOUT
        )
        self.attestation_handler = AttestationHandler(
            self.connector, self.resolver, self.submitter, self.custodian
        )
        self.service = AnchorService(
            config=self.config,
            user_store=self.user_store,
            resolver=self.resolver,
            challenge_service=self.challenge_service,
            token_issuer=self.token_issuer,
            preparer=self.preparer,
            submitter=self.submitter,
            attestation_handler=self.attestation_handler,
            custodian=self.custodian,
            logger=self.logger,
        )

        self.app = FastAPI(title="didanchor", version=__version__)
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=self.config.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        guard = RoleGuard(self.service, self.config.DAPP_DID_URI)
        AnchorRoutes(self.service, guard).setup_routes(self.app)

    def initialize(self) -> bool:
        """Resolve the application's DID; False leaves challenges disabled."""
        try:
            return bool(self.service.initialize_app_did())
        except ServiceError as e:
            self.logger.error("Could not initialize application DID: %s", e)
            return False
