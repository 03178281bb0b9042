# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#      https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Architecture Analysis Package

Three analysis tiers over a code domain: component metrics, architectural
issue detection and refactoring planning.
"""

from domainscope.analysis.models import (
    ComponentMetrics,
    ArchitecturalIssue,
    RefactoringOption,
    MigrationStrategy,
    AnalysisResult,
)
from domainscope.analysis.component_analyzer import ComponentAnalyzer
from domainscope.analysis.issue_detector import IssueDetector
from domainscope.analysis.refactoring_planner import RefactoringPlanner
from domainscope.analysis.deep_analysis_engine import DeepAnalysisEngine

__all__ = [
    "ComponentMetrics",
    "ArchitecturalIssue",
    "RefactoringOption",
    "MigrationStrategy",
    "AnalysisResult",
    "ComponentAnalyzer",
    "IssueDetector",
    "RefactoringPlanner",
    "DeepAnalysisEngine",
]
