import numpy as np
from scipy import stats
from sklearn.metrics import mean_squared_error, r2_score, mean_absolute_error


def evaluate_metrics(y_obs, y_pred):
    """
    Prediction metrics of y_pred against y_obs.

    Pearson r is NaN when either vector is constant.
    """
    metrics = {
        'MAE': mean_absolute_error(y_obs, y_pred),
        'MSE': mean_squared_error(y_obs, y_pred),
        'r2': r2_score(y_obs, y_pred),
        'r': _pearson_r(y_obs, y_pred)}
    metrics["RMSE"] = np.sqrt(metrics["MSE"])
    return metrics


def _pearson_r(y_obs, y_pred):
    if np.ptp(y_obs) == 0 or np.ptp(y_pred) == 0:
        return np.nan
    return stats.pearsonr(y_obs, y_pred)[0]
