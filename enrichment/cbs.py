"""CBS StatLine clients: neighborhood indicators, crime and demographics."""

import logging
import math
from typing import Any, Dict, Generic, Optional, TypeVar
from urllib.parse import quote

from enrichment.base import EnrichmentClient, candidate_region_codes, get_float, get_int, get_str
from models.location import ResolvedLocation
from models.stats import CrimeStats, Demographics, NeighborhoodStats

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CbsTableClient(EnrichmentClient, Generic[T]):
    """
    Query one CBS OData table for the most specific region with data.

    Candidate codes are tried neighborhood -> district -> municipality and
    the first row found wins. Results per code are cached, including "no
    row" results.
    """

    DEFAULT_BASE_URL = "https://opendata.cbs.nl/ODataApi/odata"
    TABLE = ""
    SELECT_FIELDS: tuple = ()
    CACHE_PREFIX = "cbs"
    DESCRIPTION = "CBS lookup"

    # Raise on non-success status instead of treating it as "no data"
    RAISE_ON_HTTP_ERROR = False

    async def fetch(self, location: ResolvedLocation) -> Optional[T]:
        """
        Fetch data for the first candidate region code that has any.

        Args:
            location: Resolved location carrying the region codes

        Returns:
            Parsed row, or None when no candidate had data
        """
        for code in candidate_region_codes(location):
            result = await self.fetch_for_code(code)
            if result is not None:
                return result
        return None

    async def fetch_for_code(self, region_code: str) -> Optional[T]:
        cache_key = f"{self.CACHE_PREFIX}:{region_code}"
        hit, cached = self.cache.lookup(cache_key)
        if hit:
            return cached

        ttl = self.ttl_minutes("cbs_cache_minutes", 1440)
        base = self.base_url("cbs_base_url", self.DEFAULT_BASE_URL)
        url = (
            f"{base}/{self.TABLE}/TypedDataSet"
            f"?$filter=WijkenEnBuurten%20eq%20'{quote(region_code, safe='')}'"
            f"&$top=1&$select={','.join(self.SELECT_FIELDS)}"
        )

        response = await self.http.get(url)
        if not response.is_success:
            if self.RAISE_ON_HTTP_ERROR:
                response.raise_for_status()
            logger.warning(
                f"{self.DESCRIPTION} failed for region {region_code.strip()} "
                f"with status {response.status_code}"
            )
            return None

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"{self.DESCRIPTION} returned invalid JSON for region {region_code.strip()}: {e}")
            return None

        values = data.get("value") if isinstance(data, dict) else None
        if not isinstance(values, list) or not values:
            self.cache.set(cache_key, None, ttl)
            return None

        result = self.parse_row(values[0])
        self.cache.set(cache_key, result, ttl)
        return result

    def parse_row(self, row: Dict[str, Any]) -> T:
        raise NotImplementedError


class CbsNeighborhoodStatsClient(CbsTableClient[NeighborhoodStats]):
    """Key figures per neighborhood/district/municipality (table 85618NED)."""

    TABLE = "85618NED"
    CACHE_PREFIX = "cbs"
    DESCRIPTION = "CBS neighborhood lookup"
    SELECT_FIELDS = (
        "WijkenEnBuurten",
        "SoortRegio_2",
        "AantalInwoners_5",
        "Mannen_6",
        "Vrouwen_7",
        "k_0Tot15Jaar_8",
        "k_15Tot25Jaar_9",
        "k_25Tot45Jaar_10",
        "k_45Tot65Jaar_11",
        "k_65JaarOfOuder_12",
        "Eenpersoonshuishoudens_30",
        "HuishoudensZonderKinderen_31",
        "HuishoudensMetKinderen_32",
        "GemiddeldeHuishoudensgrootte_33",
        "Bevolkingsdichtheid_34",
        "GemiddeldeWOZWaardeVanWoningen_36",
        "PercentageMeergezinswoning_38",
        "Koopwoningen_41",
        "HuurwoningenTotaal_42",
        "InBezitWoningcorporatie_43",
        "InBezitOverigeVerhuurders_44",
        "BouwjaarVoor2000_46",
        "BouwjaarVanaf2000_47",
        "BasisonderwijsVmboMbo1_70",
        "HavoVwoMbo24_71",
        "HboWo_72",
        "HuishoudensMetEenLaagInkomen_73",
        "GemiddeldInkomenPerInkomensontvanger_80",
        "GemiddeldInkomenPerInwoner_81",
        "PersonenautoSTotaal_109",
        "PersonenautoSPerHuishouden_112",
        "PersonenautoSNaarOppervlakte_113",
        "AfstandTotHuisartsenpraktijk_115",
        "AfstandTotGroteSupermarkt_116",
        "AfstandTotKinderdagverblijf_117",
        "AfstandTotSchool_118",
        "ScholenBinnen3Km_119",
        "MateVanStedelijkheid_125",
    )

    def parse_row(self, row: Dict[str, Any]) -> NeighborhoodStats:
        return NeighborhoodStats(
            region_code=get_str(row, "WijkenEnBuurten") or "",
            region_type=get_str(row, "SoortRegio_2") or "Onbekend",
            residents=get_int(row, "AantalInwoners_5"),
            population_density=get_int(row, "Bevolkingsdichtheid_34"),
            average_woz_value_keur=get_float(row, "GemiddeldeWOZWaardeVanWoningen_36"),
            low_income_households_percent=get_float(row, "HuishoudensMetEenLaagInkomen_73"),
            men=get_int(row, "Mannen_6"),
            women=get_int(row, "Vrouwen_7"),
            age_0_to_15=get_int(row, "k_0Tot15Jaar_8"),
            age_15_to_25=get_int(row, "k_15Tot25Jaar_9"),
            age_25_to_45=get_int(row, "k_25Tot45Jaar_10"),
            age_45_to_65=get_int(row, "k_45Tot65Jaar_11"),
            age_65_plus=get_int(row, "k_65JaarOfOuder_12"),
            single_households=get_int(row, "Eenpersoonshuishoudens_30"),
            households_without_children=get_int(row, "HuishoudensZonderKinderen_31"),
            households_with_children=get_int(row, "HuishoudensMetKinderen_32"),
            average_household_size=get_float(row, "GemiddeldeHuishoudensgrootte_33"),
            urbanity=get_str(row, "MateVanStedelijkheid_125"),
            average_income_per_recipient=get_float(row, "GemiddeldInkomenPerInkomensontvanger_80"),
            average_income_per_inhabitant=get_float(row, "GemiddeldInkomenPerInwoner_81"),
            education_low=get_int(row, "BasisonderwijsVmboMbo1_70"),
            education_medium=get_int(row, "HavoVwoMbo24_71"),
            education_high=get_int(row, "HboWo_72"),
            percentage_owner_occupied=get_int(row, "Koopwoningen_41"),
            percentage_rental=get_int(row, "HuurwoningenTotaal_42"),
            percentage_social_housing=get_int(row, "InBezitWoningcorporatie_43"),
            percentage_private_rental=get_int(row, "InBezitOverigeVerhuurders_44"),
            percentage_pre_2000=get_int(row, "BouwjaarVoor2000_46"),
            percentage_post_2000=get_int(row, "BouwjaarVanaf2000_47"),
            percentage_multi_family=get_int(row, "PercentageMeergezinswoning_38"),
            cars_per_household=get_float(row, "PersonenautoSPerHuishouden_112"),
            car_density=get_int(row, "PersonenautoSNaarOppervlakte_113"),
            total_cars=get_int(row, "PersonenautoSTotaal_109"),
            distance_to_gp=get_float(row, "AfstandTotHuisartsenpraktijk_115"),
            distance_to_supermarket=get_float(row, "AfstandTotGroteSupermarkt_116"),
            distance_to_daycare=get_float(row, "AfstandTotKinderdagverblijf_117"),
            distance_to_school=get_float(row, "AfstandTotSchool_118"),
            schools_within_3km=get_float(row, "ScholenBinnen3Km_119"),
        )


def rate_per_1000(count: Optional[int], residents: Optional[int]) -> Optional[int]:
    """
    Convert an absolute count into a rate per 1000 residents.

    Rounds half away from zero. Without a usable resident count the raw
    count is returned unchanged.
    """
    if count is None:
        return None
    if not residents or residents <= 0:
        return count
    return int(math.floor(count * 1000 / residents + 0.5))


class CbsCrimeStatsClient(CbsTableClient[CrimeStats]):
    """Registered crime per region (table 83765NED)."""

    TABLE = "83765NED"
    CACHE_PREFIX = "cbs-crime"
    DESCRIPTION = "CBS crime lookup"
    RAISE_ON_HTTP_ERROR = True
    SELECT_FIELDS = (
        "WijkenEnBuurten",
        "AantalInwoners_5",
        "TotaalDiefstalUitWoningSchuurED_106",
        "VernielingMisdrijfTegenOpenbareOrde_107",
        "GeweldsEnSeksueleMisdrijven_108",
    )

    def parse_row(self, row: Dict[str, Any]) -> CrimeStats:
        residents = get_int(row, "AantalInwoners_5")
        theft = rate_per_1000(get_int(row, "TotaalDiefstalUitWoningSchuurED_106"), residents)
        vandalism = rate_per_1000(get_int(row, "VernielingMisdrijfTegenOpenbareOrde_107"), residents)
        violent = rate_per_1000(get_int(row, "GeweldsEnSeksueleMisdrijven_108"), residents)

        rates = [rate for rate in (theft, vandalism, violent) if rate is not None]
        return CrimeStats(
            total_crimes_per_1000=sum(rates) if rates else None,
            burglary_per_1000=theft,
            violent_crime_per_1000=violent,
            theft_per_1000=theft,
            vandalism_per_1000=vandalism,
        )


class CbsDemographicsClient(CbsTableClient[Demographics]):
    """Age and household composition (table 83765NED)."""

    TABLE = "83765NED"
    CACHE_PREFIX = "cbs-demo"
    DESCRIPTION = "CBS demographics lookup"
    SELECT_FIELDS = (
        "WijkenEnBuurten",
        "k_0Tot15Jaar_8",
        "k_15Tot25Jaar_9",
        "k_25Tot45Jaar_10",
        "k_45Tot65Jaar_11",
        "k_65JaarOfOuder_12",
        "GemiddeldeHuishoudensgrootte_32",
        "Koopwoningen_40",
        "Eenpersoonshuishoudens_29",
        "HuishoudensMetKinderen_31",
    )

    def parse_row(self, row: Dict[str, Any]) -> Demographics:
        return Demographics(
            percent_age_0_to_14=get_int(row, "k_0Tot15Jaar_8"),
            percent_age_15_to_24=get_int(row, "k_15Tot25Jaar_9"),
            percent_age_25_to_44=get_int(row, "k_25Tot45Jaar_10"),
            percent_age_45_to_64=get_int(row, "k_45Tot65Jaar_11"),
            percent_age_65_plus=get_int(row, "k_65JaarOfOuder_12"),
            average_household_size=get_float(row, "GemiddeldeHuishoudensgrootte_32"),
            percent_owner_occupied=get_int(row, "Koopwoningen_40"),
            percent_single_households=get_int(row, "Eenpersoonshuishoudens_29"),
            percent_family_households=get_int(row, "HuishoudensMetKinderen_31"),
        )
