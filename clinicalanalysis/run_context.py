"""
RunContext - immutable snapshot of everything a run needs.

The snapshot is taken once at pipeline start from the patient's clinical
profile and the enabled analysis modules. Stages derive their payloads
from it and never from later state.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

MODULE_PHENOTYPE = "phenotype"
MODULE_SCREENING = "screening"
MODULE_LITERATURE = "literature"

DEFAULT_MODULES = frozenset({MODULE_PHENOTYPE, MODULE_SCREENING, MODULE_LITERATURE})


@dataclass(frozen=True)
class HpoTerm:
    """A Human Phenotype Ontology term attached to the patient."""

    hpo_id: str
    name: str = ""


@dataclass(frozen=True)
class Demographics:
    """Patient demographics required by the screening stage."""

    sex: Optional[str] = None
    age_years: Optional[int] = None
    age_days: Optional[int] = None


@dataclass(frozen=True)
class RunContext:
    """Immutable configuration of one analysis run.

    Attributes
    ----------
    session_id : str
        Analysis session the backends compute against
    enabled_modules : FrozenSet[str]
        Analysis modules switched on for this run
    hpo_terms : Tuple[HpoTerm, ...]
        Patient phenotype terms
    demographics : Demographics, optional
        Sex and age; absent when the profile has no demographics section
    """

    session_id: str
    enabled_modules: FrozenSet[str] = DEFAULT_MODULES
    hpo_terms: Tuple[HpoTerm, ...] = ()
    demographics: Optional[Demographics] = None
    ethnicity: Optional[str] = None
    indication: Optional[str] = None
    has_family_history: bool = False
    consanguinity: bool = False
    sample_type: Optional[str] = None
    is_pregnant: bool = False
    has_parental_samples: bool = False
    has_affected_sibling: bool = False
    screening_mode: str = "proactive_adult"
    vcf_file_path: Optional[str] = None
    filtering_preset: str = "strict"
    extras: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "enabled_modules", frozenset(self.enabled_modules))
        object.__setattr__(self, "hpo_terms", tuple(self.hpo_terms))

    def is_enabled(self, module: str) -> bool:
        return module in self.enabled_modules

    @property
    def hpo_ids(self) -> Tuple[str, ...]:
        return tuple(term.hpo_id for term in self.hpo_terms)

    @classmethod
    def from_profile(
        cls,
        session_id: str,
        profile: Mapping[str, Any],
        enabled_modules: Optional[Iterable[str]] = None,
        **overrides: Any,
    ) -> "RunContext":
        """Build a RunContext from a clinical profile document.

        The profile follows the dashboard's clinical profile layout::

            {
              "demographics": {"age_years": 34, "sex": "female"},
              "ethnicity": {"primary": "european"},
              "clinical_context": {
                "indication": "...",
                "family_history": {"has_affected_relatives": true, "consanguinity": false}
              },
              "phenotype": {"hpo_terms": [{"hpo_id": "HP:0001250", "name": "Seizure"}]},
              "sample_info": {"sample_type": "blood", "has_parental_samples": false},
              "reproductive": {"is_pregnant": false}
            }

        Parameters
        ----------
        session_id : str
            Analysis session identifier
        profile : Mapping
            Clinical profile document
        enabled_modules : Iterable[str], optional
            Modules to enable; defaults to ``profile["modules"]`` or all modules
        **overrides
            Field values taking precedence over the profile (e.g. screening_mode)

        Returns
        -------
        RunContext
            Frozen snapshot
        """
        demographics_doc = profile.get("demographics")
        demographics = None
        if demographics_doc:
            demographics = Demographics(
                sex=demographics_doc.get("sex"),
                age_years=demographics_doc.get("age_years"),
                age_days=demographics_doc.get("age_days"),
            )

        clinical = profile.get("clinical_context") or {}
        family = clinical.get("family_history") or {}
        sample_info = profile.get("sample_info") or {}
        reproductive = profile.get("reproductive") or {}
        ethnicity = profile.get("ethnicity") or {}
        phenotype = profile.get("phenotype") or {}

        hpo_terms = []
        for term in phenotype.get("hpo_terms") or []:
            if isinstance(term, str):
                hpo_terms.append(HpoTerm(hpo_id=term))
            else:
                hpo_terms.append(HpoTerm(hpo_id=term["hpo_id"], name=term.get("name", "")))

        if enabled_modules is None:
            enabled_modules = profile.get("modules") or DEFAULT_MODULES

        values = dict(
            session_id=session_id,
            enabled_modules=frozenset(enabled_modules),
            hpo_terms=tuple(hpo_terms),
            demographics=demographics,
            ethnicity=ethnicity.get("primary") if isinstance(ethnicity, Mapping) else ethnicity,
            indication=clinical.get("indication"),
            has_family_history=bool(family.get("has_affected_relatives", False)),
            consanguinity=bool(family.get("consanguinity", False)),
            sample_type=sample_info.get("sample_type"),
            is_pregnant=bool(reproductive.get("is_pregnant", False)),
            has_parental_samples=bool(sample_info.get("has_parental_samples", False)),
            has_affected_sibling=bool(sample_info.get("has_affected_sibling", False)),
            vcf_file_path=profile.get("vcf_file_path"),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})

        context = cls(**values)
        logger.debug(
            f"RunContext for session {session_id}: modules={sorted(context.enabled_modules)}, "
            f"{len(context.hpo_terms)} HPO terms, demographics={'yes' if demographics else 'no'}"
        )
        return context
