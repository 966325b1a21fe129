"""Convert raw weather channels into per-kW generator output.

All functions are vectorized over numpy arrays and return capacity
factors (kW produced per kW installed) in [0, 1], except hydro which
returns absolute power for a reference run-of-river plant.

PV model:
    T_cell = T_amb + (NOCT - 20) / 800 * G
    cf     = G / G_stc * (1 + gamma * (T_cell - 25)) * PR

Wind model (generic IEC class II turbine):
    v_hub = v_ref * (h_hub / h_ref) ** alpha
    cf    = 0                   v < v_cut_in or v > v_cut_out
          = (v / v_rated) ** 3  v_cut_in <= v < v_rated
          = 1                   v_rated <= v <= v_cut_out

Hydro:
    P = rho * g * h * Q * eta
"""

import numpy as np

# PV
STC_IRRADIANCE_W_M2 = 1000.0
PV_TEMP_COEFFICIENT = -0.004        # 1/°C, crystalline silicon
PV_NOCT_C = 45.0
PV_PERFORMANCE_RATIO = 0.86         # inverter, wiring, soiling losses

# Wind
WIND_CUT_IN_M_S = 3.0
WIND_RATED_M_S = 12.0
WIND_CUT_OUT_M_S = 25.0
WIND_HUB_HEIGHT_M = 100.0
WIND_REFERENCE_HEIGHT_M = 10.0
WIND_SHEAR_EXPONENT = 1.0 / 7.0

# Hydro
WATER_DENSITY_KG_M3 = 1000.0
GRAVITY_M_S2 = 9.81
HYDRO_HEAD_M = 50.0
HYDRO_EFFICIENCY = 0.85


def cell_temperature(irradiance_w_m2: np.ndarray, ambient_c: np.ndarray) -> np.ndarray:
    """NOCT cell temperature estimate (°C)."""
    return ambient_c + (PV_NOCT_C - 20.0) / 800.0 * irradiance_w_m2


def solar_capacity_factor(irradiance_w_m2: np.ndarray,
                          ambient_c: np.ndarray) -> np.ndarray:
    """PV output per kW installed.

    Args:
        irradiance_w_m2: Global horizontal irradiance (W/m²)
        ambient_c: Ambient dry bulb temperature (°C)

    Returns:
        Capacity factor per hour, clipped to [0, 1]
    """
    g = np.clip(np.asarray(irradiance_w_m2, dtype=float), 0.0, None)
    t_cell = cell_temperature(g, np.asarray(ambient_c, dtype=float))
    temp_factor = 1.0 + PV_TEMP_COEFFICIENT * (t_cell - 25.0)
    cf = g / STC_IRRADIANCE_W_M2 * temp_factor * PV_PERFORMANCE_RATIO
    return np.clip(cf, 0.0, 1.0)


def hub_height_wind_speed(speed_m_s: np.ndarray,
                          reference_height_m: float = WIND_REFERENCE_HEIGHT_M,
                          hub_height_m: float = WIND_HUB_HEIGHT_M,
                          shear_exponent: float = WIND_SHEAR_EXPONENT) -> np.ndarray:
    """Extrapolate measured wind speed to hub height with the power law."""
    factor = (hub_height_m / reference_height_m) ** shear_exponent
    return np.asarray(speed_m_s, dtype=float) * factor


def wind_capacity_factor(hub_speed_m_s: np.ndarray) -> np.ndarray:
    """Turbine output per kW installed from hub-height wind speed."""
    v = np.clip(np.asarray(hub_speed_m_s, dtype=float), 0.0, None)
    cf = np.where(v >= WIND_RATED_M_S, 1.0, (v / WIND_RATED_M_S) ** 3)
    cf = np.where((v < WIND_CUT_IN_M_S) | (v > WIND_CUT_OUT_M_S), 0.0, cf)
    return cf


def hydro_power_kw(discharge_m3_s: np.ndarray,
                   head_m: float = HYDRO_HEAD_M,
                   efficiency: float = HYDRO_EFFICIENCY) -> np.ndarray:
    """Run-of-river power from river discharge (kW)."""
    q = np.clip(np.asarray(discharge_m3_s, dtype=float), 0.0, None)
    return WATER_DENSITY_KG_M3 * GRAVITY_M_S2 * head_m * q * efficiency / 1000.0
