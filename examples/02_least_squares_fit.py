import numpy as np
from scipy.optimize import least_squares

from sensible_params import Parameters

ps = (
    Parameters()
    .add("x", independent=True)
    .add("amp", value=1.0, min=0.0)
    .add("mu", value=0.0, min=-3.0, max=3.0)
    .add("sigma", value=1.0, min=1e-6, max=10.0)
    .add("fwhm", formula="2.354820045 * sigma")
    .add("height", formula="amp / (sigma * sqrt(2 * 3.141592653589793))")
)
ps.validate()
ps.resolve()
f = ps.compile()


def gaussian(x, amp, mu, sigma, **_):
    return amp * np.exp(-0.5 * ((x - mu) / sigma) ** 2)


rng = np.random.default_rng(0)
x = np.linspace(-3, 3, 200)
sigma_y = 0.05
y = gaussian(x, amp=1.3, mu=0.2, sigma=0.7) + rng.normal(0, sigma_y, size=x.size)


def residuals(theta):
    return (gaussian(x, **f.as_dict(theta)) - y) / sigma_y


lo, hi = ps.free_bounds()
result = least_squares(residuals, ps.free_vector(), bounds=(lo, hi))

ps.update_from_vector(f(result.x))
print(ps)
print("fwhm:", ps["fwhm"].value)
