from __future__ import annotations

from typing import Dict

from gpcal.backend import constants
from gpcal.backend.services import gateway_service, rate_limit_service


def get_summary() -> Dict[str, object]:
	return {
		"app": {"name": constants.APP_NAME, "version": constants.APP_VERSION},
		"provider": gateway_service.provider_status(),
		"rate_limit": {
			"window_s": rate_limit_service.window_seconds(),
			"max_requests": rate_limit_service.max_requests(),
			"tracked_clients": rate_limit_service.tracked_clients(),
		},
	}
