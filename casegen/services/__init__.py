# Copyright 2025 John Brosnihan
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
"""Services package for casegen."""

from casegen.services.normalizer import SummaryIdGenerator, normalize
from casegen.services.recoverer import recover_array
from casegen.services.recovery import recover_test_cases
from casegen.services.recovery_errors import (
    EmptyResponseError,
    ParseFailureError,
    RecoveryError,
    ShapeError,
)
from casegen.services.sanitizer import sanitize

__all__ = [
    "EmptyResponseError",
    "ParseFailureError",
    "RecoveryError",
    "ShapeError",
    "SummaryIdGenerator",
    "normalize",
    "recover_array",
    "recover_test_cases",
    "sanitize",
]
