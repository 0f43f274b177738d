# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import secrets
import string
import time
from datetime import datetime, timezone
from typing import Optional

from blog_shared.constants import ID_RANDOM_SUFFIX_LENGTH

_ID_ALPHABET = string.ascii_lowercase + string.digits


def get_unique_id(kind: str) -> str:
    """Returns an id like `post_1718000000000_k3j9x0abc`."""
    millis = int(time.time() * 1000)
    suffix = "".join(
        secrets.choice(_ID_ALPHABET) for _ in range(ID_RANDOM_SUFFIX_LENGTH)
    )
    return f"{kind}_{millis}_{suffix}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parses an ISO-8601 timestamp; missing values sort first."""
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
